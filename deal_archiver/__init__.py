"""deal-archiver: archives CRM deals marked for archival through an HTTP service."""

__version__ = "1.0.0"
