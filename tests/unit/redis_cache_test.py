from mockito import mock, unstub, verify, when
from unittest import TestCase

import redis

from fetchcache import CachedResponse, CorruptEntry, serialize
from fetchcache.redis_cache import RedisCache


ENTRY = CachedResponse(status=200, reason='OK', url='http://test.local/', redirected=False,
                       headers=(('Content-Type', 'text/plain'),), body=b'hello')


class TestRedisCache(TestCase):
    def setUp(self):
        self.client = mock(redis.Redis)

    def tearDown(self):
        unstub()

    def test_get_miss(self):
        when(self.client).get('fetchcache:key').thenReturn(None)
        self.assertIsNone(RedisCache(self.client).get('key'))

    def test_get_hit(self):
        when(self.client).get('fetchcache:key').thenReturn(serialize(ENTRY))
        self.assertEqual(ENTRY, RedisCache(self.client).get('key'))

    def test_get_corrupt(self):
        when(self.client).get('fetchcache:key').thenReturn(b'garbage')
        with self.assertRaisesRegex(CorruptEntry, 'fetchcache:key'):
            RedisCache(self.client).get('key')

    def test_set_without_ttl(self):
        when(self.client).set('fetchcache:key', serialize(ENTRY)).thenReturn(True)
        RedisCache(self.client).set('key', ENTRY)
        verify(self.client).set('fetchcache:key', serialize(ENTRY))

    def test_set_with_default_ttl(self):
        when(self.client).set('app:key', serialize(ENTRY), px=100).thenReturn(True)
        RedisCache(self.client, prefix='app:', default_ttl=0.1).set('key', ENTRY)
        verify(self.client).set('app:key', serialize(ENTRY), px=100)

    def test_set_ttl_overrides_default(self):
        when(self.client).set('fetchcache:key', serialize(ENTRY), px=2500).thenReturn(True)
        RedisCache(self.client, default_ttl=60).set('key', ENTRY, ttl=2.5)
        verify(self.client).set('fetchcache:key', serialize(ENTRY), px=2500)

    def test_delete(self):
        when(self.client).delete('fetchcache:key').thenReturn(0)
        cache = RedisCache(self.client)
        cache.delete('key')
        cache.delete('key')
        verify(self.client, times=2).delete('fetchcache:key')

    def test_close(self):
        when(self.client).close().thenReturn(None)
        RedisCache(self.client).close()
        verify(self.client).close()
