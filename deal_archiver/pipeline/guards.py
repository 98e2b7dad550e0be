"""Startup guards - precondition checks that fail fast before polling begins.

Inability to reach the store or a broken configuration is the only failure
that stops the process. Once the loop runs, every error stays local to a
cycle or a record.
"""

from __future__ import annotations

from urllib.parse import urlparse

from deal_archiver.config.settings import ArchiverConfig
from deal_archiver.store.base import StatusStore, StoreError
from deal_archiver.utils.logging import get_logger
from deal_archiver.utils.result import Err, ExitCode, GuardError, Ok, Result

logger = get_logger("pipeline.guards")


class StartupGuards:
    """
    Precondition checks for the archiver.

    Each guard returns Ok(None) if the check passes and Err(GuardError)
    otherwise.
    """

    def __init__(self, config: ArchiverConfig, store: StatusStore) -> None:
        self.config = config
        self.store = store

    async def check_all(self) -> Result[None, GuardError]:
        """
        Run all precondition checks.

        Returns:
            Result indicating success or first failure
        """
        logger.info("running_guards")

        result = self.check_archive_url()
        if result.is_err():
            return result

        result = await self.check_store()
        if result.is_err():
            return result

        logger.info("guards_passed")
        return Ok(None)

    def check_archive_url(self) -> Result[None, GuardError]:
        """Check the archive endpoint is an absolute http(s) URL."""
        url = urlparse(self.config.archive.archive_url)
        if url.scheme not in ("http", "https") or not url.netloc:
            error = GuardError(
                code=ExitCode.GUARD_ARCHIVE_URL,
                message=f"Archive URL is not usable: {self.config.archive.archive_url!r}",
                details="Set archive.archive_url to the archiving service endpoint.",
            )
            logger.error("guard_failed", guard="archive_url", code=error.code)
            return Err(error)

        logger.debug("guard_passed", guard="archive_url")
        return Ok(None)

    async def check_store(self) -> Result[None, GuardError]:
        """Check the status store answers."""
        try:
            await self.store.ping()
        except StoreError as e:
            error = GuardError(
                code=ExitCode.GUARD_STORE,
                message="Cannot reach the status store",
                details=str(e),
            )
            logger.error(
                "guard_failed",
                guard="store",
                code=error.code,
                error=str(e),
            )
            return Err(error)

        logger.debug("guard_passed", guard="store")
        return Ok(None)


async def run_guards(config: ArchiverConfig, store: StatusStore) -> Result[None, GuardError]:
    """
    Convenience function to run all guards.

    Args:
        config: Archiver configuration
        store: Opened status store

    Returns:
        Result indicating success or first guard failure
    """
    return await StartupGuards(config, store).check_all()
