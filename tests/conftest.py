"""Pytest configuration and fixtures."""

import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from lethe_sync.core.hashing import hash_bytes


class ObjectStore:
    """
    In-process stand-in for the flat-file object store.

    files maps URL paths ("download/a.bin") to bytes. fail maps a URL path to
    a list of HTTP statuses returned (one per request) before the real body.
    """

    def __init__(self):
        self.files = {}
        self.fail = {}
        self.requests = []
        self.honor_range = True
        self.server = None

    def put(self, path: str, data: bytes):
        self.files[path] = data

    def url(self, path: str = "") -> str:
        return str(self.server.make_url("/" + path))

    @property
    def base_url(self) -> str:
        return self.url("download/")

    def requests_for(self, prefix: str = "download/") -> list:
        return [r for r in self.requests if r[0].startswith(prefix)]

    async def handle(self, request: web.Request) -> web.Response:
        path = request.match_info["path"]
        range_header = request.headers.get("Range")
        self.requests.append((path, range_header))

        pending = self.fail.get(path)
        if pending:
            return web.Response(status=pending.pop(0))
        if path not in self.files:
            return web.Response(status=404)

        data = self.files[path]
        if range_header and self.honor_range:
            start = int(range_header.split("=", 1)[1].rstrip("-"))
            if start >= len(data):
                return web.Response(status=416)
            return web.Response(
                status=206,
                body=data[start:],
                headers={"Content-Range": f"bytes {start}-{len(data) - 1}/{len(data)}"},
            )
        return web.Response(body=data)


@pytest_asyncio.fixture
async def object_store():
    store = ObjectStore()
    app = web.Application()
    app.router.add_get("/{path:.*}", store.handle)
    server = TestServer(app)
    await server.start_server()
    store.server = server
    try:
        yield store
    finally:
        await server.close()


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def entry_dict(path: str, data: bytes) -> dict:
    """Manifest "files" item describing data."""
    return {"path": path, "size": len(data), "xxhash": hash_bytes(data)}


def manifest_doc(files: dict) -> dict:
    """Manifest document for {path: bytes}."""
    entries = [entry_dict(path, data) for path, data in files.items()]
    return {
        "scanned_folder": "C:/build/Limbus Company",
        "total_files": len(entries),
        "total_size": sum(e["size"] for e in entries),
        "files": entries,
    }


def manifest_session(doc) -> Mock:
    """Mock requests session whose get() returns doc as JSON."""
    response = Mock()
    response.json.return_value = doc
    response.raise_for_status.return_value = None
    session = Mock()
    session.get.return_value = response
    return session
