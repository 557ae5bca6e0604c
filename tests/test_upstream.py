import unittest
from unittest import mock

import requests
from tenacity import wait_none

from playscout.catalog import upstream
from playscout.catalog.upstream import USER_AGENT, call_with_retry, fetch_page


class _FakeResponse:
    def __init__(self, chunks, status=200, encoding="utf-8"):
        self.chunks = chunks
        self.status = status
        self.encoding = encoding
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def iter_content(self, chunk_size=1):
        return iter(self.chunks)


class TestCallWithRetry(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch.object(upstream, "RETRY_WAIT", wait_none())
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_stops_after_attempts_and_reraises_last_error(self):
        calls = []

        def flaky(*args, **kwargs):
            calls.append((args, kwargs))
            raise ConnectionError(f"attempt {len(calls)}")

        with self.assertRaises(ConnectionError) as ctx:
            call_with_retry(flaky, "kw", n_hits=5, attempts=3)
        self.assertEqual(len(calls), 3)
        self.assertEqual(str(ctx.exception), "attempt 3")
        self.assertEqual(calls[0], (("kw",), {"n_hits": 5}))

    def test_success_after_retry(self):
        outcomes = [TimeoutError("slow"), ["com.a"]]

        def fn():
            result = outcomes.pop(0)
            if isinstance(result, Exception):
                raise result
            return result

        self.assertEqual(call_with_retry(fn, attempts=2), ["com.a"])
        self.assertEqual(outcomes, [])

    def test_attempts_floor_is_one(self):
        calls = []

        def fn():
            calls.append(1)
            raise ValueError("nope")

        with self.assertRaises(ValueError):
            call_with_retry(fn, attempts=0)
        self.assertEqual(len(calls), 1)


class TestFetchPage(unittest.TestCase):
    def test_forwards_timeout_params_and_headers(self):
        resp = _FakeResponse([b"<html>", b"ok</html>"])
        with mock.patch.object(upstream.requests, "get", return_value=resp) as get:
            html = fetch_page("https://play.google.com/store/search", params={"q": "notes"}, timeout=(3, 9))
        self.assertEqual(html, "<html>ok</html>")
        args, kwargs = get.call_args
        self.assertEqual(args[0], "https://play.google.com/store/search")
        self.assertEqual(kwargs["timeout"], (3, 9))
        self.assertEqual(kwargs["params"], {"q": "notes"})
        self.assertEqual(kwargs["headers"]["User-Agent"], USER_AGENT)
        self.assertTrue(kwargs["stream"])
        self.assertTrue(resp.closed)

    def test_oversized_page_is_rejected_and_closed(self):
        resp = _FakeResponse([b"x" * 600, b"x" * 600])
        with mock.patch.object(upstream.requests, "get", return_value=resp):
            with self.assertRaises(ValueError) as ctx:
                fetch_page("https://play.google.com/big", max_bytes=1000)
        self.assertIn("too large", str(ctx.exception))
        self.assertTrue(resp.closed)

    def test_empty_page_is_rejected(self):
        resp = _FakeResponse([b"", b"   \n"])
        with mock.patch.object(upstream.requests, "get", return_value=resp):
            with self.assertRaises(ValueError) as ctx:
                fetch_page("https://play.google.com/blank")
        self.assertIn("empty page", str(ctx.exception))

    def test_http_error_propagates(self):
        resp = _FakeResponse([b"gone"], status=404)
        with mock.patch.object(upstream.requests, "get", return_value=resp):
            with self.assertRaises(requests.HTTPError):
                fetch_page("https://play.google.com/missing")

    def test_missing_encoding_defaults_to_utf8(self):
        resp = _FakeResponse(["Café".encode("utf-8")], encoding=None)
        with mock.patch.object(upstream.requests, "get", return_value=resp):
            self.assertEqual(fetch_page("https://play.google.com/x"), "Café")


if __name__ == "__main__":
    unittest.main()
