"""Archive service client."""

from deal_archiver.client.archive import (
    ArchiveClient,
    ArchiveDecodeError,
    ArchiveError,
    ArchiveOutcome,
    ArchiveRequestError,
)

__all__ = [
    "ArchiveClient",
    "ArchiveOutcome",
    "ArchiveError",
    "ArchiveRequestError",
    "ArchiveDecodeError",
]
