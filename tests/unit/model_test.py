from ddt import ddt, data
import json
import struct
from unittest import TestCase

from fetchcache import CachedResponse, CorruptEntry, deserialize, serialize


ENTRY = CachedResponse(status=200, reason='OK', url='http://test.local/', redirected=True,
                       headers=(('Set-Cookie', 'a=1'), ('Set-Cookie', 'b=2')), body=b'\x00\x01binary\xff')


def frame(metadata: bytes, body: bytes = b'') -> bytes:
    return struct.pack('>I', len(metadata)) + metadata + body


@ddt
class TestSerialization(TestCase):
    def test_round_trip(self):
        self.assertEqual(ENTRY, deserialize(serialize(ENTRY)))

    def test_layout(self):
        data = serialize(ENTRY)
        (length,) = struct.unpack('>I', data[:4])
        metadata = json.loads(data[4:4 + length].decode('utf-8'))

        self.assertEqual([['Set-Cookie', 'a=1'], ['Set-Cookie', 'b=2']], metadata['headers'])
        self.assertEqual(ENTRY.body, data[4 + length:])

    @data(
        b'',
        b'\x00\x00',
        struct.pack('>I', 100) + b'{}',
        frame(b'not json'),
        frame(b'{"status": 200}'),
        frame(b'{"status": "x", "reason": "", "url": "", "redirected": false, "headers": []}'),
        frame(b'{"status": 200, "reason": "", "url": "", "redirected": false, "headers": [["a"]]}'),
        frame(b'{"status": 200, "reason": "", "url": "", "redirected": false, "headers": [[1, 2]]}'),
        frame(b'\xff\xfe'),
    )
    def test_corrupt(self, data):
        with self.assertRaises(CorruptEntry):
            deserialize(data, 'somewhere')

    def test_corrupt_entry_names_its_location(self):
        with self.assertRaisesRegex(CorruptEntry, 'somewhere'):
            deserialize(b'', 'somewhere')


class TestCachedResponse(TestCase):
    def test_is_immutable(self):
        with self.assertRaises(AttributeError):
            ENTRY.status = 500

    def test_metadata_round_trip(self):
        self.assertEqual(ENTRY, CachedResponse.from_metadata(ENTRY.metadata(), ENTRY.body))
