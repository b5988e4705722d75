import unittest
from datetime import datetime, timedelta, timezone

from hndigest.models import Source, StoredItem
from hndigest.processing.vacuum import RetentionPurgeJob
from hndigest.storage.database import ItemStore

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class TestRetentionPurgeJob(unittest.TestCase):
    def setUp(self):
        self.store = ItemStore(":memory:")
        self.store.insert(StoredItem("1", Source.primary(), NOW - timedelta(days=1)))
        self.store.insert(StoredItem("2", Source.primary(), NOW - timedelta(days=40)))
        self.store.insert(StoredItem("3", Source.rss("feed"), NOW - timedelta(days=90)))

    def tearDown(self):
        self.store.close()

    def test_run_reports_removed_count(self):
        job = RetentionPurgeJob(self.store)
        self.assertEqual(job.run(timedelta(days=30), now=NOW), 2)
        self.assertEqual(self.store.count(), 1)

    def test_run_is_idempotent(self):
        job = RetentionPurgeJob(self.store)
        job.run(timedelta(days=30), now=NOW)
        self.assertEqual(job.run(timedelta(days=30), now=NOW), 0)
        self.assertEqual(self.store.count(), 1)

    def test_zero_retention_removes_everything_older_than_now(self):
        self.assertEqual(RetentionPurgeJob(self.store).run(timedelta(0), now=NOW), 3)


if __name__ == "__main__":
    unittest.main()
