"""Tests for the archive endpoint client."""

import httpx
import pytest

from deal_archiver.client.archive import (
    ArchiveClient,
    ArchiveDecodeError,
    ArchiveOutcome,
    ArchiveRequestError,
)

from tests.conftest import ARCHIVE_URL


class TestArchiveOutcome:
    def test_success_payload(self):
        outcome = ArchiveOutcome.from_payload(
            {"success": True, "result": {"result": "ok", "file": "d1.zip"}}
        )
        assert outcome == ArchiveOutcome(success=True, result="ok", file="d1.zip")

    def test_missing_fields_take_zero_values(self):
        assert ArchiveOutcome.from_payload({}) == ArchiveOutcome(success=False)
        assert ArchiveOutcome.from_payload(
            {"success": True, "result": None}
        ) == ArchiveOutcome(success=True)

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            "ok",
            {"success": "yes"},
            {"success": True, "result": "d1.zip"},
            {"success": True, "result": {"file": 12}},
            {"success": True, "result": ""},
            {"success": False, "result": []},
        ],
    )
    def test_wrong_shape(self, payload):
        with pytest.raises(ArchiveDecodeError, match="^failed to decode response"):
            ArchiveOutcome.from_payload(payload)


class TestArchiveClient:
    @pytest.mark.asyncio
    async def test_success(self, service, client):
        service.succeed("d1", "d1.zip")

        outcome = await client.archive("d1")

        assert outcome.success
        assert outcome.file == "d1.zip"
        request = service.requests[0]
        assert request.method == "GET"
        assert str(request.url) == f"{ARCHIVE_URL}?deal=d1"

    @pytest.mark.asyncio
    async def test_reported_failure(self, service, client):
        service.fail("d3", "disk full")

        outcome = await client.archive("d3")

        assert not outcome.success
        assert outcome.result == "disk full"

    @pytest.mark.asyncio
    async def test_status_code_is_ignored(self, service, client):
        service.responses["d4"] = lambda request: httpx.Response(
            500, json={"success": True, "result": {"file": "d4.zip"}}
        )

        outcome = await client.archive("d4")

        assert outcome.success
        assert outcome.file == "d4.zip"

    @pytest.mark.asyncio
    async def test_non_json_body(self, service, client):
        service.garbage("d5")

        with pytest.raises(ArchiveDecodeError, match="^failed to decode response"):
            await client.archive("d5")

    @pytest.mark.asyncio
    async def test_unreachable(self, service, client):
        service.unreachable("d2")

        with pytest.raises(ArchiveRequestError, match="^archive request failed: Connection refused"):
            await client.archive("d2")

    @pytest.mark.asyncio
    async def test_timeout(self, service, client):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        service.responses["d6"] = handler

        with pytest.raises(ArchiveRequestError):
            await client.archive("d6")

    @pytest.mark.asyncio
    async def test_custom_query_param(self):
        seen = []

        def handler(request):
            seen.append(request.url.params.get("id"))
            return httpx.Response(200, json={"success": True, "result": {"file": "x"}})

        async with ArchiveClient(
            ARCHIVE_URL,
            query_param="id",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        ) as client:
            await client.archive("42")

        assert seen == ["42"]

    def test_rejects_relative_url(self):
        with pytest.raises(ValueError):
            ArchiveClient("/archive")
