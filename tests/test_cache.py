import unittest
import tempfile
import os
import time
import sqlite3
import threading
from unittest.mock import patch, Mock

from storage.cache import Cache, rate_limited_get


def _resp(status, body=None, headers=None):
    resp = Mock()
    resp.status_code = status
    resp.json.return_value = body
    resp.text = str(body)
    resp.headers = headers or {}
    return resp


class TestEventPageCache(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.NamedTemporaryFile(suffix='.db', delete=False)
        self.path = tmp.name
        tmp.close()
        self.cache = Cache(self.path)

    def tearDown(self):
        self.cache.close()
        try:
            os.remove(self.path)
        except OSError:
            pass

    def test_set_get_round_trip_keeps_status(self):
        self.cache.set('github:events:alice:page:1', [{'id': '1'}], status=200)
        entry = self.cache.get('github:events:alice:page:1')
        self.assertEqual(entry['response'], [{'id': '1'}])
        self.assertEqual(entry['status'], 200)
        self.assertIn('timestamp', entry)

    def test_missing_key(self):
        self.assertIsNone(self.cache.get('nope'))
        self.assertEqual(self.cache.delete_key('nope'), 0)

    def test_stats_list_and_clear(self):
        self.cache.set('a', [], status=200)
        self.cache.set('b', [], status=200)
        self.assertEqual(self.cache.stats()['count'], 2)
        self.assertEqual({k['key'] for k in self.cache.list_keys()}, {'a', 'b'})
        self.cache.clear()
        self.assertEqual(self.cache.stats()['count'], 0)
        self.assertIsNone(self.cache.stats()['oldest'])

    def test_max_entries_prunes_oldest(self):
        capped = Cache(self.path, max_entries=2)
        try:
            capped.set('first', 1)
            conn = sqlite3.connect(self.path)
            conn.execute('UPDATE http_cache SET timestamp = ? WHERE key = ?', (time.time() - 60, 'first'))
            conn.commit()
            conn.close()
            capped.set('second', 2)
            capped.set('third', 3)
            self.assertIsNone(capped.get('first'))
            self.assertIsNotNone(capped.get('third'))
        finally:
            capped.close()

    def test_ttl_expires_entries(self):
        ttl_cache = Cache(self.path, ttl_seconds=5)
        try:
            ttl_cache.set('old', {'v': 1})
            conn = sqlite3.connect(self.path)
            conn.execute('UPDATE http_cache SET timestamp = ? WHERE key = ?', (time.time() - 3600, 'old'))
            conn.commit()
            conn.close()
            self.assertIsNone(ttl_cache.get('old'))
        finally:
            ttl_cache.close()

    def test_rate_limited_get_caches_response(self):
        with patch('storage.retry.requests.get', return_value=_resp(200, [{'id': '1'}])):
            res1 = rate_limited_get('http://example.com/events', cache=self.cache, cache_key='k', min_wait=0)
        self.assertEqual(res1['response'], [{'id': '1'}])
        self.assertEqual(res1['status'], 200)

        with patch('storage.retry.requests.get', side_effect=AssertionError('requests.get should not be called on cached hit')):
            res2 = rate_limited_get('http://example.com/events', cache=self.cache, cache_key='k', min_wait=0)
        self.assertEqual(res2['response'], [{'id': '1'}])

    def test_rate_limited_get_respects_max_age(self):
        with patch('storage.retry.requests.get', return_value=_resp(200, {'v': 1})):
            rate_limited_get('http://example.com', cache=self.cache, cache_key='k3', min_wait=0)

        conn = sqlite3.connect(self.path)
        conn.execute('UPDATE http_cache SET timestamp = ? WHERE key = ?', (time.time() - 3600, 'k3'))
        conn.commit()
        conn.close()

        with patch('storage.retry.requests.get', return_value=_resp(200, {'v': 2})) as mocked_get:
            res = rate_limited_get('http://example.com', cache=self.cache, cache_key='k3', min_wait=0, max_age=5)
        self.assertEqual(res['response'], {'v': 2})
        self.assertTrue(mocked_get.called)

        # a large max_age now hits the refreshed entry
        with patch('storage.retry.requests.get', side_effect=AssertionError('should not be called')):
            res2 = rate_limited_get('http://example.com', cache=self.cache, cache_key='k3', min_wait=0, max_age=3600)
        self.assertEqual(res2['response'], {'v': 2})

    def test_error_status_is_not_cached(self):
        with patch('storage.retry.requests.get', return_value=_resp(404, {'message': 'Not Found'})):
            res = rate_limited_get('http://example.com/missing', cache=self.cache, cache_key='missing', min_wait=0)
        self.assertEqual(res['status'], 404)
        self.assertIsNone(self.cache.get('missing'))

    def test_concurrent_set_get_no_corruption(self):
        errors = []

        def worker(thread_idx):
            try:
                for i in range(50):
                    key = f"github:events:user{thread_idx}:page:{i}"
                    self.cache.set(key, {'thread': thread_idx, 'i': i}, status=200)
                    entry = self.cache.get(key)
                    if entry is None or entry['response'].get('i') != i:
                        errors.append((thread_idx, i))
            except Exception as ex:
                errors.append(('exc', thread_idx, str(ex)))

        threads = [threading.Thread(target=worker, args=(ti,)) for ti in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(self.cache.stats()['count'], 8 * 50)


if __name__ == '__main__':
    unittest.main()
