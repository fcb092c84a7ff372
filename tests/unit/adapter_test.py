from io import BytesIO
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import TestCase

import requests

from fetchcache import CacheConfig, FileCache, MemoryCache, cache_ok_only
from fetchcache.adapter import CachedHTTPAdapter, create

from fakes import (FOUR_HUNDRED_URL, TEXT_BODY_EXPECTED, TEXT_BODY_URL, TWO_HUNDRED_URL, FakeTransportAdapter,
                   RecordingTransport)


class StubbedCachedHTTPAdapter(CachedHTTPAdapter, FakeTransportAdapter):
    pass


class TestCachedHTTPAdapter(TestCase):
    def setUp(self):
        self.transport = RecordingTransport()
        self.cache = MemoryCache()
        self.session = self.make_session(CacheConfig(self.cache))

    def tearDown(self):
        self.session.close()

    def make_session(self, config: CacheConfig) -> requests.Session:
        adapter = StubbedCachedHTTPAdapter(config)
        adapter.transport = self.transport
        session = requests.Session()
        session.mount('http://', adapter)
        return session

    def test_second_request_comes_from_the_cache(self):
        first = self.session.get(TEXT_BODY_URL)
        second = self.session.get(TEXT_BODY_URL)

        self.assertFalse(first.from_cache)
        self.assertTrue(second.from_cache)
        self.assertEqual(TEXT_BODY_EXPECTED, first.text)
        self.assertEqual(TEXT_BODY_EXPECTED, second.text)
        self.assertEqual(200, second.status_code)
        self.assertEqual('OK', second.reason)
        self.assertEqual('text/plain', second.headers['content-type'])
        self.assertEqual(1, self.transport.send_count)

    def test_streaming_a_cached_response(self):
        self.session.get(TEXT_BODY_URL)
        response = self.session.get(TEXT_BODY_URL, stream=True)
        self.assertEqual(TEXT_BODY_EXPECTED.encode('utf-8'), b''.join(response.iter_content(chunk_size=3)))

    def test_only_if_cached(self):
        response = self.session.get(TWO_HUNDRED_URL, headers={'Cache-Control': 'only-if-cached'})

        self.assertEqual(504, response.status_code)
        self.assertTrue(response.is_cache_miss)
        self.assertEqual(0, self.transport.send_count)

    def test_policy_applies(self):
        session = self.make_session(CacheConfig(self.cache, should_cache_response=cache_ok_only))
        session.get(FOUR_HUNDRED_URL)
        self.assertFalse(session.get(FOUR_HUNDRED_URL).from_cache)
        self.assertEqual(2, self.transport.send_count)

    def test_streamed_request_bodies_are_buffered_and_sent(self):
        self.session.post(TWO_HUNDRED_URL, data=BytesIO(b'payload'))
        response = self.session.post(TWO_HUNDRED_URL, data=BytesIO(b'payload'))

        self.assertTrue(response.from_cache)
        self.assertEqual(b'payload', self.transport.sent[0].body)
        self.assertEqual('7', self.transport.sent[0].headers['Content-Length'])

    def test_network_errors_propagate(self):
        with self.assertRaises(requests.ConnectionError):
            self.session.get('http://test.local/nowhere')
        self.assertEqual(0, len(self.cache))


class TestCreate(TestCase):
    def test_create_uses_a_file_cache(self):
        with TemporaryDirectory() as directory:
            adapter = create(Path(directory))
            self.assertIsInstance(adapter.orchestrator.cache, FileCache)
            adapter.close()
