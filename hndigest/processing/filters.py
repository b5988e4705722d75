"""Topic classification by regex."""

import re
from typing import Iterable

from hndigest.errors import ConfigError
from hndigest.models import TopicFilter


class FilterSet:
    """Compiled topic filters.

    All patterns are compiled up front. Every broken topic is collected and
    reported in a single ConfigError so an operator can fix the whole config
    in one pass.
    """

    def __init__(self, topics: Iterable[TopicFilter]):
        self._compiled: list[tuple[str, list[re.Pattern]]] = []
        errors: list[str] = []

        for topic in topics:
            if not topic.patterns:
                errors.append(f"topic '{topic.title}': no patterns")
                continue
            matchers = []
            for pattern in topic.patterns:
                try:
                    matchers.append(re.compile(pattern, re.IGNORECASE))
                except re.error as e:
                    errors.append(f"topic '{topic.title}': bad pattern {pattern!r} ({e})")
            self._compiled.append((topic.title, matchers))

        if errors:
            raise ConfigError("Invalid filters:\n  " + "\n  ".join(errors))

    def __len__(self) -> int:
        return len(self._compiled)

    @property
    def is_empty(self) -> bool:
        return not self._compiled

    @property
    def titles(self) -> list[str]:
        return [title for title, _ in self._compiled]

    def classify(self, text: str) -> frozenset[str]:
        """Return the titles of every topic with at least one matching pattern."""
        return frozenset(
            title
            for title, matchers in self._compiled
            if any(m.search(text) for m in matchers)
        )
