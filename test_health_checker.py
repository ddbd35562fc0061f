import time
import unittest

from cluster_transport.health_checker import HealthChecker
from cluster_transport.pools import StaticNoPingConnectionPool
from cluster_transport.resilience import ExponentialBackoff
from fakes import FakeClock, ScriptedConnection


class TestHealthChecker(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.a = ScriptedConnection("a")
        self.b = ScriptedConnection("b", ping_result=False)
        self.c = ScriptedConnection("c")
        self.pool = StaticNoPingConnectionPool(
            [self.a, self.b, self.c],
            backoff=ExponentialBackoff(initial_delay=10.0, max_delay=100.0),
            clock=self.clock,
        )
        self.checker = HealthChecker(self.pool, check_interval=0.01)

    def tearDown(self):
        self.checker.stop()

    def test_revives_eligible_connection(self):
        print("\nTesting HealthChecker: Revival")
        self.pool.mark_dead(self.c)
        self.clock.advance(10)

        revived = self.checker.check_once()

        self.assertEqual(revived, [self.c])
        self.assertTrue(self.c.is_alive())
        self.assertEqual(self.c.failure_count, 0)
        self.assertEqual(self.checker.snapshot()["revived"], {"c:9200": 1})
        print("  -> c pinged and marked alive")

    def test_skips_connections_still_backing_off(self):
        self.pool.mark_dead(self.c)
        self.clock.advance(5)
        self.assertEqual(self.checker.check_once(), [])
        self.assertEqual(self.c.pings, 0)
        self.assertEqual(self.a.pings, 0)

    def test_failed_probe_extends_backoff(self):
        self.pool.mark_dead(self.b)
        self.clock.advance(10)

        self.assertEqual(self.checker.check_once(), [])
        self.assertFalse(self.b.is_alive())
        self.assertEqual(self.b.failure_count, 2)
        self.assertFalse(self.pool.is_revival_eligible(self.b))
        self.assertEqual(self.checker.snapshot()["failed_probes"], {"b:9200": 1})

    def test_background_thread(self):
        self.pool.mark_dead(self.a)
        self.clock.advance(10)
        self.checker.start()
        self.assertTrue(self.checker.running)

        deadline = time.time() + 2
        while not self.a.is_alive() and time.time() < deadline:
            time.sleep(0.01)

        self.assertTrue(self.a.is_alive())
        self.checker.stop()
        self.assertFalse(self.checker.running)


if __name__ == '__main__':
    unittest.main()
