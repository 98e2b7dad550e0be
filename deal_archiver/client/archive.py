"""HTTP client for the external archiving service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from deal_archiver.utils.logging import get_logger

logger = get_logger("client.archive")


class ArchiveError(Exception):
    """An archive attempt could not produce an outcome."""

    pass


class ArchiveRequestError(ArchiveError):
    """Transport failure or timeout talking to the archive endpoint."""

    pass


class ArchiveDecodeError(ArchiveError):
    """The archive endpoint answered with an unusable body."""

    pass


@dataclass(frozen=True)
class ArchiveOutcome:
    """
    Result of one archive attempt.

    Attributes:
        success: Whether the service archived the record
        result: Service message; the error detail when ``success`` is False
        file: Reference to the produced archive file when ``success`` is True
    """

    success: bool
    result: str = ""
    file: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> "ArchiveOutcome":
        """
        Parse the endpoint's JSON body.

        Expected shape: ``{"success": bool, "result": {"result": str, "file": str}}``.
        Missing fields take their zero value.

        Raises:
            ArchiveDecodeError: If the body does not have that shape
        """
        if not isinstance(payload, dict):
            raise ArchiveDecodeError(
                f"failed to decode response: expected an object, got {type(payload).__name__}"
            )

        success = payload.get("success", False)
        if success is None:
            success = False
        if not isinstance(success, bool):
            raise ArchiveDecodeError(
                f"failed to decode response: 'success' must be a boolean, got {success!r}"
            )

        body = payload.get("result")
        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise ArchiveDecodeError(
                f"failed to decode response: 'result' must be an object, got {body!r}"
            )

        fields: dict[str, str] = {}
        for name in ("result", "file"):
            value = body.get(name)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ArchiveDecodeError(
                    f"failed to decode response: 'result.{name}' must be a string, got {value!r}"
                )
            fields[name] = value

        return cls(success=success, result=fields["result"], file=fields["file"])

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"success": self.success, "result": self.result, "file": self.file}


class ArchiveClient:
    """
    Requests archiving of one record per call.

    Issues ``GET <archive_url>?<query_param>=<record_id>`` and parses the body
    regardless of HTTP status code: the body alone decides success.
    """

    def __init__(
        self,
        archive_url: str,
        *,
        query_param: str = "deal",
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        parsed = urlparse(archive_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("archive_url must include an http(s) scheme and host")

        self.archive_url = archive_url
        self.query_param = query_param
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    async def archive(self, record_id: str) -> ArchiveOutcome:
        """
        Ask the service to archive a record.

        Args:
            record_id: Record identifier

        Returns:
            Parsed ArchiveOutcome

        Raises:
            ArchiveRequestError: On transport failure or timeout
            ArchiveDecodeError: On a body that is not the expected JSON
        """
        try:
            response = await self._client.get(
                self.archive_url,
                params={self.query_param: record_id},
            )
        except httpx.HTTPError as e:
            raise ArchiveRequestError(
                f"archive request failed: {str(e) or type(e).__name__}"
            ) from e

        logger.debug(
            "archive_response",
            record_id=record_id,
            status_code=response.status_code,
        )

        try:
            payload = response.json()
        except ValueError as e:
            raise ArchiveDecodeError(f"failed to decode response: {e}") from e

        return ArchiveOutcome.from_payload(payload)

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ArchiveClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
