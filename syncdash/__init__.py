"""syncdash: tenant-scoped data synchronization for the content dashboard."""

__version__ = "0.3.0"
