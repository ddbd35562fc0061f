import random
import unittest

from cluster_transport.config import BackoffConfig
from cluster_transport.errors import ImproperlyConfigured, NoConnectionsAvailable
from cluster_transport.resilience import ExponentialBackoff
from cluster_transport.selectors import (
    RandomSelector,
    RoundRobinSelector,
    StickyRoundRobinSelector,
    create_selector,
)
from fakes import ScriptedConnection


class TestExponentialBackoff(unittest.TestCase):
    def test_delay_doubles_until_cap(self):
        print("\nTesting Backoff: Exponential Growth")
        backoff = ExponentialBackoff(initial_delay=10.0, max_delay=50.0)
        self.assertEqual([backoff.delay(n) for n in range(0, 6)], [0.0, 10.0, 20.0, 40.0, 50.0, 50.0])
        print("  -> 10s, 20s, 40s, then capped at 50s")

    def test_huge_failure_count_stays_capped(self):
        backoff = ExponentialBackoff(initial_delay=1.0, max_delay=30.0)
        self.assertEqual(backoff.delay(10_000), 30.0)

    def test_eligibility_is_stable_across_calls(self):
        backoff = ExponentialBackoff(initial_delay=10.0)
        answers = {backoff.is_eligible(2, 100.0, 119.99) for _ in range(50)}
        self.assertEqual(answers, {False})
        answers = {backoff.is_eligible(2, 100.0, 120.0) for _ in range(50)}
        self.assertEqual(answers, {True})

    def test_eligibility(self):
        backoff = ExponentialBackoff(initial_delay=10.0)
        self.assertTrue(backoff.is_eligible(0, None, 0.0))
        self.assertFalse(backoff.is_eligible(1, 100.0, 109.9))
        self.assertTrue(backoff.is_eligible(1, 100.0, 110.0))

    def test_from_config(self):
        backoff = ExponentialBackoff.from_config(BackoffConfig(dead_timeout=3, max_dead_timeout=9, backoff_factor=3))
        self.assertEqual([backoff.delay(n) for n in (1, 2, 3)], [3.0, 9.0, 9.0])


class TestSelectors(unittest.TestCase):
    def setUp(self):
        self.connections = [ScriptedConnection(name) for name in ("a", "b", "c")]

    def test_round_robin(self):
        selector = RoundRobinSelector()
        picks = [selector.select(self.connections) for _ in range(4)]
        self.assertEqual(picks, self.connections + self.connections[:1])

    def test_sticky_round_robin_moves_on_when_dead(self):
        print("\nTesting Selector: Sticky Round Robin")
        a, b, c = self.connections
        selector = StickyRoundRobinSelector()
        self.assertEqual([selector.select(self.connections) for _ in range(3)], [a, a, a])

        a.mark_dead(1.0)
        self.assertIs(selector.select(self.connections), b)
        self.assertIs(selector.select(self.connections), b)
        print("  -> Stayed on a until it died, then stuck to b")

    def test_random_is_reproducible_with_seed(self):
        first = RandomSelector(random.Random(3))
        second = RandomSelector(random.Random(3))
        picks_first = [first.select(self.connections) for _ in range(10)]
        picks_second = [second.select(self.connections) for _ in range(10)]
        self.assertEqual(picks_first, picks_second)
        self.assertTrue(set(picks_first) <= set(self.connections))

    def test_empty_list(self):
        for selector in (RoundRobinSelector(), StickyRoundRobinSelector(), RandomSelector()):
            with self.subTest(selector=selector.__class__.__name__):
                with self.assertRaises(NoConnectionsAvailable):
                    selector.select([])

    def test_create_selector(self):
        self.assertIsInstance(create_selector("sticky_round_robin"), StickyRoundRobinSelector)
        self.assertIsInstance(create_selector("RANDOM"), RandomSelector)
        with self.assertRaises(ImproperlyConfigured):
            create_selector("least_loaded")


if __name__ == '__main__':
    unittest.main()
