from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


PRIMARY_SOURCE_KEY = "hackernews"
RSS_KEY_PREFIX = "rss:"


class SourceKind(Enum):
    PRIMARY = "primary"
    RSS = "rss"


@dataclass(frozen=True)
class Source:
    """Where an item came from: the top-stories API or a named RSS feed."""
    kind: SourceKind
    name: str = PRIMARY_SOURCE_KEY

    @classmethod
    def primary(cls) -> "Source":
        return cls(SourceKind.PRIMARY, PRIMARY_SOURCE_KEY)

    @classmethod
    def rss(cls, name: str) -> "Source":
        return cls(SourceKind.RSS, name)

    @classmethod
    def from_key(cls, key: str) -> "Source":
        """Inverse of ``key``: rebuild a Source from its persisted string."""
        if key.startswith(RSS_KEY_PREFIX):
            return cls.rss(key[len(RSS_KEY_PREFIX):])
        if key == PRIMARY_SOURCE_KEY:
            return cls.primary()
        raise ValueError(f"Unknown source key: {key!r}")

    @property
    def key(self) -> str:
        """Stable string stored alongside each item id."""
        if self.kind is SourceKind.RSS:
            return f"{RSS_KEY_PREFIX}{self.name}"
        return PRIMARY_SOURCE_KEY

    def __str__(self) -> str:
        return self.name


@dataclass
class CandidateItem:
    """A news item as fetched from a source, before dedup and classification."""
    external_id: str
    source: Source
    title: str
    url: Optional[str] = None
    text: str = ""  # title + description, used for classification
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class StoredItem:
    """A record marking one (source, external_id) as already processed."""
    external_id: str
    source: Source
    first_seen_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class TopicFilter:
    """A named set of regex alternatives; matches if any alternative matches."""
    title: str
    patterns: tuple[str, ...]

    @classmethod
    def from_value(cls, title: str, value: str) -> "TopicFilter":
        """Build from the comma-separated pattern list used in config files."""
        patterns = tuple(p.strip() for p in value.split(",") if p.strip())
        return cls(title=title, patterns=patterns)


@dataclass(frozen=True)
class DigestEntry:
    """A newly seen item selected for delivery, with the topics it matched."""
    external_id: str
    source: Source
    title: str
    url: Optional[str]
    published_at: datetime
    first_seen_at: datetime
    labels: frozenset[str] = frozenset()

    @classmethod
    def from_candidate(
        cls, item: CandidateItem, stored: StoredItem, labels: frozenset[str]
    ) -> "DigestEntry":
        return cls(
            external_id=item.external_id,
            source=item.source,
            title=item.title,
            url=item.url,
            published_at=item.published_at,
            first_seen_at=stored.first_seen_at,
            labels=labels,
        )
