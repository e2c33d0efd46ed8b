"""
Main CLI application using Typer.

Entry point: python -m spacesync.cli
CLI Name: spacesync-admin
"""
import typer

from spacesync import __version__ as app_version

app = typer.Typer(
    name="spacesync-admin",
    help="SpaceSync Admin CLI - offload local media to S3-compatible object storage",
)

@app.command()
def version():
    """Show CLI version information."""
    typer.echo(f"SpaceSync CLI version {app_version}")

# Register command groups
from spacesync.cli.commands import migrate
app.add_typer(migrate.app, name="migrate")
