import logging
from typing import Iterable, Optional
from urllib.parse import urlparse

from hndigest.errors import ConfigError

logger = logging.getLogger(__name__)


def _normalize_domain(domain: str) -> str:
    return domain.strip().lower().strip(".")


class BlacklistGuard:
    """Rejects URLs whose host is, or is a subdomain of, a blacklisted domain."""

    def __init__(self, domains: Iterable[str]):
        normalized = set()
        for entry in domains:
            domain = _normalize_domain(entry) if isinstance(entry, str) else ""
            if not domain:
                raise ConfigError(f"Invalid blacklisted_domains entry: {entry!r}")
            normalized.add(domain)
        self.domains = frozenset(normalized)

    def is_blacklisted(self, url: Optional[str]) -> bool:
        if not url or not self.domains:
            return False
        try:
            host = urlparse(url.strip()).hostname
        except ValueError as e:
            # Unparseable URLs are never blacklisted
            logger.warning(f"  [Blacklist] Cannot parse URL {url!r}: {e}")
            return False
        if not host:
            return False

        host = host.rstrip(".")
        labels = host.split(".")
        # "a.b.example.com" -> "a.b.example.com", "b.example.com", "example.com", "com"
        return any(".".join(labels[i:]) in self.domains for i in range(len(labels)))
