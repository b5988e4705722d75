"""Turn a batch of candidate items into a digest of new, labeled entries."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from hndigest.errors import StoreError
from hndigest.models import CandidateItem, DigestEntry, StoredItem
from hndigest.processing.blacklist import BlacklistGuard
from hndigest.processing.filters import FilterSet
from hndigest.storage.database import ItemStore

logger = logging.getLogger(__name__)


@dataclass
class ItemFailure:
    """A candidate that could not be recorded as seen."""
    item: CandidateItem
    error: StoreError

    def __str__(self) -> str:
        return f"{self.item.source.key}/{self.item.external_id}: {self.error}"


@dataclass
class PipelineResult:
    digest: list[DigestEntry] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)
    total: int = 0
    blacklisted: int = 0
    duplicates: int = 0
    recorded: int = 0

    @property
    def included(self) -> int:
        return len(self.digest)


class ClassificationPipeline:
    """Blacklist, dedup, classify and record a batch of candidates.

    Every candidate that passes the blacklist and dedup checks is recorded in
    the store whether or not it ends up in the digest, so classification
    never changes what counts as seen.
    """

    def __init__(
        self,
        store: ItemStore,
        filters: FilterSet,
        blacklist: BlacklistGuard,
        include_unmatched: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.filters = filters
        self.blacklist = blacklist
        self.include_unmatched = include_unmatched
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def keep(self, labels: frozenset[str], reverse: bool) -> bool:
        """Decide delivery from the matched labels.

        An empty filter set accepts everything in normal mode and nothing in
        reverse mode, which keeps the two modes complementary.
        """
        matched = bool(labels) or self.filters.is_empty
        if reverse:
            return not matched
        return matched or self.include_unmatched

    def run(self, items: Iterable[CandidateItem], reverse: bool = False) -> PipelineResult:
        result = PipelineResult()

        for item in items:
            result.total += 1

            if self.blacklist.is_blacklisted(item.url):
                logger.debug(f"  [Skip] blacklisted {item.source.key}/{item.external_id} {item.url}")
                result.blacklisted += 1
                continue

            try:
                if self.store.exists(item.source, item.external_id):
                    result.duplicates += 1
                    continue
            except StoreError as e:
                logger.error(f"  [Store] {e}")
                result.failures.append(ItemFailure(item, e))
                continue

            labels = self.filters.classify(item.text or item.title)
            stored = StoredItem(
                external_id=item.external_id,
                source=item.source,
                first_seen_at=self._clock(),
            )
            try:
                self.store.insert(stored)
            except StoreError as e:
                # Not recorded, so not delivered: it will come back next run
                logger.error(f"  [Store] {e}")
                result.failures.append(ItemFailure(item, e))
                continue
            result.recorded += 1

            if self.keep(labels, reverse):
                result.digest.append(DigestEntry.from_candidate(item, stored, labels))

        if result.failures:
            logger.error(f"  {len(result.failures)} item(s) could not be recorded:")
            for failure in result.failures:
                logger.error(f"    - {failure}")

        return result
