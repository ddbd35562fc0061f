import threading
import unittest
from collections import Counter
from unittest.mock import MagicMock

from cluster_transport.errors import ImproperlyConfigured, NoConnectionsAvailable
from cluster_transport.hooks import HookEvents, HookManager
from cluster_transport.pools import SimpleConnectionPool, StaticNoPingConnectionPool
from cluster_transport.resilience import ExponentialBackoff
from cluster_transport.selectors import RoundRobinSelector
from fakes import FakeClock, ScriptedConnection


def make_pool(names=("a", "b", "c"), clock=None, dead_timeout=60.0, hooks=None):
    connections = [ScriptedConnection(name) for name in names]
    pool = StaticNoPingConnectionPool(
        connections,
        backoff=ExponentialBackoff(initial_delay=dead_timeout, max_delay=dead_timeout * 16),
        hooks=hooks,
        clock=clock or FakeClock(),
    )
    return pool, connections


class TestRoundRobinSelection(unittest.TestCase):
    def test_each_alive_connection_selected_once_per_cycle(self):
        pool, (a, b, c) = make_pool()
        self.assertEqual([pool.select() for _ in range(3)], [a, b, c])
        self.assertEqual([pool.select() for _ in range(3)], [a, b, c])

    def test_skips_dead_connection(self):
        print("\nTesting Pool: Skip Dead")
        pool, (a, b, c) = make_pool()
        pool.mark_dead(b)

        selected = [pool.select() for _ in range(4)]
        self.assertEqual(selected, [a, c, a, c])
        print("  -> Selections cycled over {a, c} only")

    def test_cursor_continues_after_returned_connection(self):
        pool, (a, b, c) = make_pool()
        self.assertIs(pool.select(), a)
        pool.mark_dead(b)
        # cursor sits on b, which is skipped
        self.assertIs(pool.select(), c)
        self.assertIs(pool.select(), a)

    def test_empty_pool_raises(self):
        pool = StaticNoPingConnectionPool([])
        with self.assertRaises(NoConnectionsAvailable):
            pool.select()

    def test_concurrent_selection_is_fair(self):
        pool, connections = make_pool()
        picks = Counter()
        lock = threading.Lock()

        def worker():
            for _ in range(100):
                conn = pool.select()
                with lock:
                    picks[conn.host.host] += 1

        threads = [threading.Thread(target=worker) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(picks, Counter({"a": 100, "b": 100, "c": 100}))


class TestRevival(unittest.TestCase):
    def test_all_dead_returns_oldest_failure(self):
        print("\nTesting Pool: Last-Resort Revival")
        clock = FakeClock()
        pool, (a, b, c) = make_pool(clock=clock)
        pool.mark_dead(b)
        clock.advance(1)
        pool.mark_dead(a)
        clock.advance(1)
        pool.mark_dead(c)

        self.assertIs(pool.select(), b)
        self.assertFalse(b.is_alive())
        print("  -> Longest-dead connection b handed out as a probe")

    def test_all_dead_prefers_oldest_over_cursor_once_backoffs_elapse(self):
        clock = FakeClock()
        pool, (a, b, c) = make_pool(clock=clock)
        self.assertIs(pool.select(), a)

        pool.mark_dead(a)
        clock.advance(10)
        pool.mark_dead(b)
        clock.advance(10)
        pool.mark_dead(c)
        clock.advance(1000)

        self.assertEqual(pool.partition()["eligible"], [a, b, c])
        self.assertIs(pool.select(), a)
        self.assertIs(pool.select(), a)

    def test_all_dead_tie_goes_to_pool_order(self):
        pool, (a, b, c) = make_pool()
        for conn in (c, b, a):
            pool.mark_dead(conn)
        self.assertIs(pool.select(), a)

    def test_never_raises_when_pool_non_empty(self):
        pool, connections = make_pool()
        for conn in connections:
            pool.mark_dead(conn)
        for _ in range(10):
            self.assertIn(pool.select(), connections)

    def test_dead_connection_eligible_after_backoff(self):
        clock = FakeClock()
        pool, (a, b, c) = make_pool(clock=clock, dead_timeout=10.0)
        pool.mark_dead(b)

        clock.advance(5)
        self.assertEqual([pool.select(), pool.select()], [a, c])

        clock.advance(5)
        self.assertIs(pool.select(), a)
        self.assertIs(pool.select(), b)
        # a probe does not revive the node by itself
        self.assertFalse(b.is_alive())

    def test_backoff_grows_with_failures(self):
        clock = FakeClock()
        pool, (a, b, c) = make_pool(clock=clock, dead_timeout=10.0)
        pool.mark_dead(b)
        pool.mark_dead(b)

        clock.advance(15)
        self.assertFalse(pool.is_revival_eligible(b))
        clock.advance(5)
        self.assertTrue(pool.is_revival_eligible(b))

    def test_partition(self):
        clock = FakeClock()
        pool, (a, b, c) = make_pool(clock=clock, dead_timeout=10.0)
        pool.mark_dead(b)
        clock.advance(20)
        pool.mark_dead(c)

        parts = pool.partition()
        self.assertEqual(parts["alive"], [a])
        self.assertEqual(parts["eligible"], [b])
        self.assertEqual(parts["dead"], [c])


class TestHealthTransitions(unittest.TestCase):
    def test_mark_alive_resets_failure_count(self):
        pool, (a, b, c) = make_pool()
        for _ in range(3):
            pool.mark_dead(a)
        self.assertEqual(a.failure_count, 3)
        self.assertIsNotNone(a.last_failure)

        pool.mark_alive(a)
        self.assertTrue(a.is_alive())
        self.assertEqual(a.failure_count, 0)
        self.assertIsNone(a.last_failure)

    def test_mark_dead_records_clock(self):
        clock = FakeClock(now=42.0)
        pool, (a, b, c) = make_pool(clock=clock)
        pool.mark_dead(a)
        self.assertEqual(a.last_failure, 42.0)

    def test_foreign_connection_rejected(self):
        pool, _ = make_pool()
        stranger = ScriptedConnection("x")
        with self.assertRaises(ValueError):
            pool.mark_dead(stranger)

    def test_transitions_fire_hooks(self):
        hooks = MagicMock(spec=HookManager)
        pool, (a, b, c) = make_pool(hooks=hooks)

        pool.mark_alive(a)
        hooks.trigger_hook.assert_not_called()

        pool.mark_dead(a)
        hooks.trigger_hook.assert_called_with(
            HookEvents.CONNECTION_DEAD, host="a:9200", failure_count=1
        )

        pool.mark_alive(a)
        hooks.trigger_hook.assert_called_with(HookEvents.CONNECTION_REVIVED, host="a:9200")


class TestOwnership(unittest.TestCase):
    def test_connection_cannot_join_two_pools(self):
        pool, connections = make_pool()
        with self.assertRaises(ImproperlyConfigured):
            StaticNoPingConnectionPool([connections[0]])

    def test_duplicate_connection_rejected(self):
        conn = ScriptedConnection("a")
        with self.assertRaises(ImproperlyConfigured):
            StaticNoPingConnectionPool([conn, conn])

    def test_close_releases_connections(self):
        pool, connections = make_pool()
        pool.close()
        self.assertEqual(len(pool), 0)
        other = StaticNoPingConnectionPool(connections)
        self.assertEqual(len(other), 3)

    def test_snapshot(self):
        pool, (a, b, c) = make_pool(clock=FakeClock(now=5.0))
        pool.mark_dead(c)
        snap = pool.snapshot()
        self.assertEqual([s["host"] for s in snap], ["a:9200", "b:9200", "c:9200"])
        self.assertEqual(snap[2], {"host": "c:9200", "alive": False, "failure_count": 1, "last_failure": 5.0})


class TestSimplePool(unittest.TestCase):
    def test_ignores_health(self):
        connections = [ScriptedConnection(n) for n in ("a", "b")]
        pool = SimpleConnectionPool(connections, selector=RoundRobinSelector())
        pool.mark_dead(connections[1])

        self.assertEqual([pool.select() for _ in range(4)], connections * 2)
        self.assertEqual(connections[1].failure_count, 1)

    def test_empty(self):
        with self.assertRaises(NoConnectionsAvailable):
            SimpleConnectionPool([]).select()


if __name__ == '__main__':
    unittest.main()
