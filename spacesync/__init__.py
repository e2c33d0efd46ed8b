"""
SpaceSync: offload local media to S3-compatible object storage.
"""

__version__ = "0.3.0"
