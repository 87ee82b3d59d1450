import threading
import time
import unittest

from scoring.pool import run_corresponding


class TestRunCorresponding(unittest.TestCase):
    def test_results_follow_submission_order(self):
        def task(i):
            def _run():
                # later tasks finish first
                time.sleep(0.01 * (5 - i))
                return i
            return _run

        results = run_corresponding([task(i) for i in range(5)], pool_size=5)
        self.assertEqual([r.value for r in results], [0, 1, 2, 3, 4])

    def test_failure_stays_in_its_slot(self):
        def boom():
            raise KeyError('missing')

        results = run_corresponding([lambda: 1, boom, lambda: 3], pool_size=2)
        self.assertEqual([r.ok for r in results], [True, False, True])
        self.assertIsInstance(results[1].error, KeyError)
        self.assertEqual(results[2].value, 3)

    def test_pool_bounds_concurrency(self):
        lock = threading.Lock()
        state = {'running': 0, 'peak': 0}

        def task():
            with lock:
                state['running'] += 1
                state['peak'] = max(state['peak'], state['running'])
            time.sleep(0.02)
            with lock:
                state['running'] -= 1

        run_corresponding([task] * 8, pool_size=2)
        self.assertLessEqual(state['peak'], 2)

    def test_no_tasks(self):
        self.assertEqual(run_corresponding([]), [])


if __name__ == '__main__':
    unittest.main()
