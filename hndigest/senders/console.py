import sys
from typing import Optional, TextIO

from hndigest.models import DigestEntry
from hndigest.senders.formatting import digest_to_text


class ConsoleSender:
    """Print the digest to stdout. Used when no other channel is configured."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    def send(self, digest: list[DigestEntry]) -> int:
        if not digest:
            return 0
        print(digest_to_text(digest), file=self.stream)
        return len(digest)
