import unittest
from datetime import timedelta
from unittest import mock

from psycopg.errors import UndefinedTable

from newscurator.storage.retry_queue import PostgresRetryQueue, next_retry_delay

from curation_fakes import FIXED_NOW, FakeClock, FakeQueue


class TestBackoff(unittest.TestCase):
    def test_schedule(self):
        expected = {
            1: timedelta(minutes=15),
            2: timedelta(minutes=30),
            3: timedelta(hours=1),
            4: timedelta(hours=2),
            5: timedelta(hours=4),
            6: timedelta(hours=6),
            7: timedelta(hours=6),
            20: timedelta(hours=6),
        }
        for attempt, delay in expected.items():
            self.assertEqual(next_retry_delay(attempt), delay, attempt)

    def test_formula_with_custom_bounds(self):
        base, ceiling = timedelta(minutes=1), timedelta(days=1)
        for n in range(1, 10):
            want = min(ceiling, base * 2 ** (min(n, 6) - 1))
            self.assertEqual(next_retry_delay(n, base=base, ceiling=ceiling), want)


class TestQueueSemantics(unittest.TestCase):
    def test_same_link_is_updated_not_duplicated(self):
        clock = FakeClock()
        queue = FakeQueue(clock)
        first = queue.enqueue("https://lab.example.com/a", {"v": 1}, "image: page_timeout")
        clock.now = FIXED_NOW + timedelta(minutes=20)
        second = queue.enqueue("https://lab.example.com/a", {"v": 2}, "image: no_valid_image")

        self.assertEqual(len(queue.entries), 1)
        self.assertEqual(first.attempt_count, 1)
        self.assertEqual(first.next_eligible_at, FIXED_NOW + timedelta(minutes=15))
        self.assertEqual(second.attempt_count, 2)
        self.assertEqual(second.next_eligible_at, clock.now + timedelta(minutes=30))
        self.assertEqual(second.created_at, FIXED_NOW)

    def test_due_respects_eligibility(self):
        clock = FakeClock()
        queue = FakeQueue(clock)
        queue.enqueue("https://lab.example.com/a", {}, "x")
        self.assertEqual(queue.due(), [])
        clock.now = FIXED_NOW + timedelta(minutes=15)
        self.assertEqual([e.link for e in queue.due()], ["https://lab.example.com/a"])


class TestPostgresRetryQueue(unittest.TestCase):
    @mock.patch("newscurator.storage.retry_queue.psycopg.connect")
    def test_missing_table_disables_queue_and_logs_once(self, connect):
        connect.side_effect = UndefinedTable('relation "image_retry_queue" does not exist')
        queue = PostgresRetryQueue("dbname=test", clock=FakeClock())

        with self.assertLogs("newscurator.storage.retry_queue", level="WARNING") as logs:
            self.assertIsNone(queue.enqueue("https://lab.example.com/a", {}, "x"))
            self.assertEqual(queue.due(), [])
            self.assertEqual(queue.queued_links(["https://lab.example.com/a"]), set())
            queue.delete("https://lab.example.com/a")

        self.assertFalse(queue.enabled)
        self.assertEqual(len(logs.records), 1)
        self.assertEqual(connect.call_count, 1)


if __name__ == "__main__":
    unittest.main()
