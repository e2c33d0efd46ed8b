"""
Shared helpers for CLI commands.
"""
import typer


def confirm_action(message: str, default: bool = False) -> bool:
    """Ask the operator to confirm a destructive action."""
    return typer.confirm(message, default=default)
