"""Tests for CLI validation, settings assembly, argument parsing, and runs."""

import asyncio
import io
import os
import tempfile
import threading
import unittest
from unittest import mock

from aiohttp import web
from aiohttp.test_utils import AioHTTPTestCase, unused_port

from client.config import DEFAULTS
from client.constants import MAX_PORT, MAX_REPEAT, MIB, MIN_PORT, MIN_REPEAT
from client.download import ERROR, FINISHED, STOPPED, ThroughputEstimator
from server.app import ServerSettings, create_app
from server.payload import make_chunk
from server.sizes import SizeLimits


class TestValidation(unittest.TestCase):
    """Test the _validate function from speedtest.py."""

    def _validate(self, **kwargs):
        # Import here to avoid triggering side effects at module level
        from speedtest import _validate
        defaults = {"size_mb": 100, "repeat": 1, "interval": 0.0, "timeout": None}
        defaults.update(kwargs)
        return _validate(**defaults)

    def test_defaults_valid(self):
        self._validate()

    def test_size_too_small(self):
        with self.assertRaises(ValueError):
            self._validate(size_mb=0)

    def test_repeat_bounds(self):
        self._validate(repeat=MIN_REPEAT)
        self._validate(repeat=MAX_REPEAT)
        with self.assertRaises(ValueError):
            self._validate(repeat=MIN_REPEAT - 1)
        with self.assertRaises(ValueError):
            self._validate(repeat=MAX_REPEAT + 1)

    def test_negative_interval(self):
        with self.assertRaises(ValueError):
            self._validate(interval=-1)

    def test_timeout(self):
        self._validate(timeout=2.5)
        with self.assertRaises(ValueError):
            self._validate(timeout=0)


class TestBuildSettings(unittest.TestCase):
    def _build(self, **overrides):
        from speedtest import _build_settings
        config = dict(DEFAULTS)
        config.update(overrides)
        return _build_settings(config)

    def test_defaults(self):
        s = self._build()
        self.assertEqual(s.limits.min_mb, DEFAULTS["min_mb"])
        self.assertEqual(s.limits.max_mb, DEFAULTS["max_mb"])
        self.assertEqual(s.chunk_size, DEFAULTS["chunk_size"])

    def test_port_bounds(self):
        self._build(port=MIN_PORT)
        self._build(port=MAX_PORT)
        with self.assertRaises(ValueError):
            self._build(port=MAX_PORT + 1)

    def test_inconsistent_limits(self):
        with self.assertRaises(ValueError):
            self._build(min_mb=500, max_mb=100)

    def test_bad_chunk_size(self):
        with self.assertRaises(ValueError):
            self._build(chunk_size=10)


class TestMerge(unittest.TestCase):
    def test_none_does_not_override(self):
        from speedtest import _merge
        merged = _merge({"port": 8080, "host": "a"}, {"port": None, "host": "b"})
        self.assertEqual(merged, {"port": 8080, "host": "b"})


class TestParser(unittest.TestCase):
    def test_run_options(self):
        from speedtest import build_parser
        args = build_parser().parse_args(
            ["run", "--url", "http://h:1", "--size", "20", "--timeout", "3", "--json"]
        )
        self.assertEqual(args.command, "run")
        self.assertEqual(args.size, 20)
        self.assertEqual(args.timeout, 3.0)
        self.assertTrue(args.json)

    def test_serve_options(self):
        from speedtest import build_parser
        args = build_parser().parse_args(["serve", "--port", "9000", "--max-mb", "2000"])
        self.assertEqual(args.port, 9000)
        self.assertEqual(args.max_mb, 2000)
        self.assertIsNone(args.host)

    def test_command_required(self):
        from speedtest import build_parser
        with self.assertRaises(SystemExit):
            build_parser().parse_args([])


class TestConfigCommand(unittest.TestCase):
    def test_set_and_get(self):
        from speedtest import main
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("client.config._config_path", return_value=path):
                main(["config", "port", "9123"])
                from client.config import get_config_value
                self.assertEqual(get_config_value("port"), 9123)

    def test_unknown_key_exits(self):
        from speedtest import main
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("client.config._config_path", return_value=path):
                with self.assertRaises(SystemExit):
                    main(["config", "bogus", "1"])



# ---------------------------------------------------------------------------
# Run path
# ---------------------------------------------------------------------------

async def _slow_payload(request):
    """Stream 64 KiB every 50 ms so a transfer outlives short timeouts."""
    resp = web.StreamResponse(headers={"Content-Type": "application/octet-stream"})
    resp.content_length = 64 * MIB
    await resp.prepare(request)
    chunk = make_chunk()
    try:
        for _ in range(1024):
            await resp.write(chunk)
            await asyncio.sleep(0.05)
    except ConnectionResetError:
        pass
    return resp


class TestRunSpeedtest(AioHTTPTestCase):
    async def get_application(self):
        app = web.Application()
        app.router.add_get("/{size}", _slow_payload)
        return app

    def _estimator(self):
        return ThroughputEstimator(base_url=str(self.server.make_url("/")), size_mb=64)

    async def test_timeout_stops_transfer(self):
        from speedtest import run_speedtest
        est = self._estimator()
        with mock.patch("sys.stdout", new_callable=io.StringIO) as out:
            session = await run_speedtest(est, simple=True, timeout=0.3)

        self.assertEqual(session.status, STOPPED)
        self.assertIsNone(session.error)
        self.assertLess(session.bytes_received, 64 * MIB)
        self.assertFalse(est.running)
        self.assertIn("Status: stopped", out.getvalue())

    async def test_json_output_file(self):
        from speedtest import run_speedtest
        est = self._estimator()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "result.json")
            with mock.patch("sys.stdout", new_callable=io.StringIO) as out:
                await run_speedtest(est, json_output=True, output_file=path, timeout=0.2)
            self.assertTrue(os.path.isfile(path))
        self.assertIn('"status": "stopped"', out.getvalue())


class _BackgroundServer:
    """Serve an aiohttp app from its own loop so ``asyncio.run`` callers can reach it."""

    def __init__(self, app):
        self.app = app
        self.port = unused_port()
        self.loop = asyncio.new_event_loop()
        self._runner = web.AppRunner(app)
        self._thread = threading.Thread(target=self._run, daemon=True)

    @property
    def url(self):
        return f"http://127.0.0.1:{self.port}"

    def _run(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self):
        self._thread.start()
        asyncio.run_coroutine_threadsafe(self._setup(), self.loop).result(timeout=10)

    async def _setup(self):
        await self._runner.setup()
        await web.TCPSite(self._runner, "127.0.0.1", self.port).start()

    def stop(self):
        asyncio.run_coroutine_threadsafe(self._runner.cleanup(), self.loop).result(timeout=10)
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=10)
        self.loop.close()


class TestRunCommand(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        settings = ServerSettings(limits=SizeLimits(min_mb=1, max_mb=64, default_mb=4))
        cls.server = _BackgroundServer(create_app(settings))
        cls.server.start()

    @classmethod
    def tearDownClass(cls):
        cls.server.stop()

    def _main(self, *argv):
        from speedtest import main
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("client.config._config_path", return_value=path), \
                    mock.patch("sys.stdout", new_callable=io.StringIO) as out:
                try:
                    main(["run", "--url", self.server.url, "--simple", *argv])
                except SystemExit as exc:
                    return exc.code, out.getvalue()
        return 0, out.getvalue()

    def test_repeat_runs_each_time(self):
        code, out = self._main("--size", "4", "--repeat", "2")
        self.assertEqual(code, 0)
        self.assertEqual(out.count(f"Status: {FINISHED}"), 2)

    def test_error_exits_non_zero(self):
        code, out = self._main("--size", "128", "--repeat", "2")
        self.assertEqual(code, 1)
        self.assertEqual(out.count(f"Status: {ERROR}"), 2)
        self.assertIn("network error", out)

    def test_invalid_repeat_exits_non_zero(self):
        code, _ = self._main("--repeat", "0")
        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
