"""Integration tests for server.app using aiohttp's test client."""

import unittest

from aiohttp import web
from aiohttp import test_utils
from aiohttp.test_utils import AioHTTPTestCase

from server.app import ServerSettings, create_app
from server.constants import MIB
from server.sizes import SizeLimits


async def _count_body(resp) -> int:
    total = 0
    async for chunk in resp.content.iter_chunked(256 * 1024):
        total += len(chunk)
    return total


class TestPayloadRoutes(AioHTTPTestCase):
    async def get_application(self):
        settings = ServerSettings(limits=SizeLimits(min_mb=10, max_mb=1000, default_mb=10))
        return create_app(settings)

    async def test_index_page(self):
        async with self.client.get("/") as resp:
            self.assertEqual(resp.status, 200)
            self.assertEqual(resp.content_type, "text/html")
            self.assertEqual(resp.charset, "utf-8")
            self.assertEqual(resp.headers["Cache-Control"], "no-store")
            text = await resp.text()
        self.assertIn("<!doctype html>", text)
        self.assertIn("FILE_MB=10", text)

    async def test_hundred_megabytes(self):
        async with self.client.get("/100m") as resp:
            self.assertEqual(resp.status, 200)
            self.assertEqual(resp.content_length, 104_857_600)
            received = await _count_body(resp)
        self.assertEqual(received, 104_857_600)

    async def test_payload_headers(self):
        async with self.client.get("/10m") as resp:
            self.assertEqual(resp.status, 200)
            self.assertEqual(resp.content_type, "application/octet-stream")
            self.assertEqual(resp.headers["Cache-Control"], "no-store")
            self.assertEqual(resp.headers["Access-Control-Allow-Origin"], "*")
            self.assertIn('filename="10m.bin"', resp.headers["Content-Disposition"])
            await resp.read()

    async def test_payload_content_pattern(self):
        async with self.client.get("/10m") as resp:
            body = await resp.read()
        self.assertEqual(len(body), 10 * MIB)
        self.assertEqual(body[:4], bytes([0, 1, 2, 3]))
        self.assertEqual(body[256], 0)

    async def test_repeated_requests_same_length(self):
        lengths = []
        for _ in range(2):
            async with self.client.get("/12m") as resp:
                lengths.append(await _count_body(resp))
        self.assertEqual(lengths, [12 * MIB, 12 * MIB])

    async def test_kilobyte_unit(self):
        async with self.client.get("/10240k") as resp:
            self.assertEqual(resp.status, 200)
            self.assertEqual(await _count_body(resp), 10 * MIB)

    async def test_download_default(self):
        async with self.client.get("/download") as resp:
            self.assertEqual(resp.status, 200)
            self.assertEqual(await _count_body(resp), 10 * MIB)

    async def test_below_minimum_rejected(self):
        async with self.client.get("/5m") as resp:
            self.assertEqual(resp.status, 400)
            self.assertNotIn("Content-Disposition", resp.headers)
            text = await resp.text()
        self.assertIn("out of range", text)
        self.assertLess(len(text), 200)

    async def test_above_maximum_rejected(self):
        async with self.client.get("/1001m") as resp:
            self.assertEqual(resp.status, 400)

    async def test_malformed_rejected(self):
        async with self.client.get("/abc") as resp:
            self.assertEqual(resp.status, 400)
            self.assertIn("malformed", await resp.text())

    async def test_trailing_newline_rejected(self):
        async with self.client.get("/10m%0A") as resp:
            self.assertEqual(resp.status, 400)
            self.assertNotIn("Content-Disposition", resp.headers)

    async def test_non_ascii_digits_rejected(self):
        async with self.client.get("/%D9%A1%D9%A0m") as resp:
            self.assertEqual(resp.status, 400)
            self.assertNotIn("Content-Disposition", resp.headers)

    async def test_unmatched_path_404_with_usage(self):
        async with self.client.get("/a/b") as resp:
            self.assertEqual(resp.status, 404)
            self.assertIn("Usage", await resp.text())

    async def test_trailing_slash_redirects(self):
        async with self.client.get("/10m/", allow_redirects=False) as resp:
            self.assertIn(resp.status, (301, 308))
            self.assertTrue(resp.headers["Location"].endswith("/10m"))

    async def test_post_not_allowed(self):
        async with self.client.post("/10m") as resp:
            self.assertEqual(resp.status, 405)


class TestLocationsProxy(AioHTTPTestCase):
    BODY = b'[{"iata":"FRA","city":"Frankfurt"}]'

    async def _fake_locations(self, request):
        return web.Response(body=self.BODY, content_type="application/json")

    async def asyncSetUp(self):
        upstream = web.Application()
        upstream.router.add_get("/locations", self._fake_locations)
        self.upstream = test_utils.TestServer(upstream)
        await self.upstream.start_server()
        await super().asyncSetUp()

    async def asyncTearDown(self):
        await super().asyncTearDown()
        await self.upstream.close()

    async def get_application(self):
        url = str(self.upstream.make_url("/locations"))
        return create_app(ServerSettings(locations_url=url))

    async def test_proxied_verbatim(self):
        async with self.client.get("/locations") as resp:
            self.assertEqual(resp.status, 200)
            self.assertEqual(resp.content_type, "application/json")
            self.assertEqual(await resp.read(), self.BODY)


class TestLocationsUpstreamDown(AioHTTPTestCase):
    async def get_application(self):
        return create_app(ServerSettings(locations_url="http://127.0.0.1:1/locations"))

    async def test_bad_gateway(self):
        async with self.client.get("/locations") as resp:
            self.assertEqual(resp.status, 502)


class TestServerSettings(unittest.TestCase):
    def test_chunk_size_bounds(self):
        with self.assertRaises(ValueError):
            ServerSettings(chunk_size=1024)
        with self.assertRaises(ValueError):
            ServerSettings(chunk_size=2 * MIB)

    def test_defaults(self):
        s = ServerSettings()
        self.assertEqual(s.chunk_size, 64 * 1024)
        self.assertEqual(s.limits.default_mb, 100)


if __name__ == "__main__":
    unittest.main()
