from __future__ import annotations

import asyncio
import json

import httpx

from persistence.document import CuratorDocument, CuratorRecord
from persistence.document_store import serialize_document
from sync.remote import RemoteSyncClient


def _doc() -> CuratorDocument:
    doc = CuratorDocument.skeleton(["FIB"])
    doc.curators["FIB_1"] = CuratorRecord(id="FIB_1", name="Sleazy", organization="FIB")
    doc.organizations["FIB"].curators.append("FIB_1")
    return doc


def test_push_posts_whole_document():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"success": True, "message": "Data saved successfully"})

    async def _run():
        client = RemoteSyncClient("http://remote.test/", transport=httpx.MockTransport(handler))
        doc = _doc()

        assert await client.push(doc) is True
        assert client.last_synced == serialize_document(doc)
        assert client.has_diverged(serialize_document(doc)) is False
        assert client.consecutive_failures == 0

    asyncio.run(_run())

    assert len(seen) == 1
    method, path, body = seen[0]
    assert (method, path) == ("POST", "/api/data/save")
    assert body["curators"]["FIB_1"]["name"] == "Sleazy"


def test_push_failures_resolve_false():
    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"success": False, "message": "Error saving data"})

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def _run():
        for handler in (server_error, unreachable):
            client = RemoteSyncClient("http://remote.test", transport=httpx.MockTransport(handler))
            assert await client.push(_doc()) is False
            assert client.last_synced is None
            assert client.consecutive_failures == 1

    asyncio.run(_run())


def test_pull_returns_document_or_none():
    remote_doc = _doc().to_disk_doc()

    def ok(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/data/load"
        return httpx.Response(200, json=remote_doc)

    def not_a_document(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["nope"])

    def garbage(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>")

    async def _run():
        client = RemoteSyncClient("http://remote.test", transport=httpx.MockTransport(ok))
        pulled = await client.pull()
        assert pulled is not None
        assert pulled.curators["FIB_1"].name == "Sleazy"

        for handler in (not_a_document, garbage):
            client = RemoteSyncClient("http://remote.test", transport=httpx.MockTransport(handler))
            assert await client.pull() is None

    asyncio.run(_run())


def test_disabled_client_never_calls_out():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("should not be called")

    async def _run():
        client = RemoteSyncClient("", transport=httpx.MockTransport(handler))
        assert client.enabled is False
        assert await client.push(_doc()) is False
        assert await client.pull() is None

    asyncio.run(_run())


def test_malformed_remote_url_degrades_to_offline():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("should not be called")

    async def _run():
        client = RemoteSyncClient("http://remote.test:notaport", transport=httpx.MockTransport(handler))
        assert client.enabled is True
        assert await client.push(_doc()) is False
        assert await client.pull() is None
        assert client.consecutive_failures == 2

    asyncio.run(_run())
