"""Tests for the aiohttp transport, against a local test server."""

import asyncio

from aiohttp import test_utils, web

from imgcache.core.cache_manager import ImageCache
from imgcache.models.config import CacheConfig
from imgcache.storage.filesystem import LocalStorage
from imgcache.transport.http import (
    HttpTransport,
    close_connection_pool,
    get_connection_pool,
)
from tests.conftest import Recorder

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 4096


async def _image(request: web.Request) -> web.Response:
    return web.Response(body=PNG, content_type="image/png")


async def _private(request: web.Request) -> web.Response:
    if request.headers.get("X-Token") != "secret":
        return web.Response(status=403)
    return web.Response(body=b"private", content_type="image/png")


async def _upload(request: web.Request) -> web.Response:
    return web.Response(body=b"posted", content_type="image/png")


async def _slow(request: web.Request) -> web.Response:
    await asyncio.sleep(1)
    return web.Response(body=PNG)


def serve(scenario):
    """Runs scenario(server) with a fresh test server and connection pool."""

    async def _main():
        app = web.Application()
        app.router.add_get("/img/cat.png", _image)
        app.router.add_get("/img/private.png", _private)
        app.router.add_post("/img/upload.png", _upload)
        app.router.add_get("/img/slow.png", _slow)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            return await scenario(server)
        finally:
            await close_connection_pool()
            await server.close()

    return asyncio.run(_main())


def test_ok_response_is_written(tmp_path):
    destination = tmp_path / "nested" / "cattemp.png"

    async def scenario(server):
        transport = HttpTransport()
        return await transport.fetch(
            "GET", str(server.make_url("/img/cat.png")), {}, destination
        ).wait()

    result = serve(scenario)

    assert result.ok
    assert result.status == 200
    assert destination.read_bytes() == PNG


def test_error_status_is_reported_without_body(tmp_path):
    destination = tmp_path / "missing.png"

    async def scenario(server):
        transport = HttpTransport()
        return await transport.fetch(
            "GET", str(server.make_url("/img/missing.png")), {}, destination
        ).wait()

    result = serve(scenario)

    assert result.status == 404
    assert result.error is None
    assert not result.ok
    assert not destination.exists()


def test_headers_are_sent(tmp_path):
    destination = tmp_path / "private.png"

    async def scenario(server):
        transport = HttpTransport()
        url = str(server.make_url("/img/private.png"))
        denied = await transport.fetch("GET", url, {}, destination).wait()
        allowed = await transport.fetch(
            "GET", url, {"X-Token": "secret"}, destination
        ).wait()
        return denied, allowed

    denied, allowed = serve(scenario)

    assert denied.status == 403
    assert allowed.status == 200
    assert destination.read_bytes() == b"private"


def test_method_is_used(tmp_path):
    destination = tmp_path / "upload.png"

    async def scenario(server):
        transport = HttpTransport()
        return await transport.fetch(
            "POST", str(server.make_url("/img/upload.png")), {}, destination
        ).wait()

    assert serve(scenario).status == 200
    assert destination.read_bytes() == b"posted"


def test_cancel_settles_with_cancelled_error(tmp_path):
    async def scenario(server):
        transport = HttpTransport()
        transfer = transport.fetch(
            "GET", str(server.make_url("/img/slow.png")), {}, tmp_path / "slow.png"
        )
        await asyncio.sleep(0.05)
        transfer.cancel()
        return await transfer.wait()

    result = serve(scenario)

    assert isinstance(result.error, asyncio.CancelledError)
    assert result.status is None
    assert not result.ok


def test_connection_error_is_a_result(tmp_path):
    async def scenario():
        transport = HttpTransport(connect_timeout=2)
        try:
            return await transport.fetch(
                "GET", "http://127.0.0.1:1/a.png", {}, tmp_path / "a.png"
            ).wait()
        finally:
            await transport.close()

    result = asyncio.run(scenario())

    assert result.error is not None
    assert result.status is None


def test_image_cache_end_to_end(tmp_path):
    config = CacheConfig(cache_dir=tmp_path / "cache")

    async def scenario(server):
        cache = ImageCache(
            config, storage=LocalStorage(), transport=HttpTransport.from_config(config)
        )
        handler = Recorder()
        uri = str(server.make_url("/img/cat.png"))
        entry = cache.subscribe(uri, handler, immutable=True)
        await cache.join()
        return entry, handler

    entry, handler = serve(scenario)

    assert handler.calls[-1] == (entry.local_path, False, False)
    assert entry.local_path.read_bytes() == PNG
    assert [p.name for p in (tmp_path / "cache").iterdir()] == [entry.local_path.name]


def test_pool_is_recreated_for_each_event_loop():
    async def open_pool():
        return await get_connection_pool()

    async def open_and_close_pool():
        session = await get_connection_pool()
        await close_connection_pool()
        return session

    first = asyncio.run(open_pool())
    second = asyncio.run(open_and_close_pool())

    assert second is not first
    assert second.closed
