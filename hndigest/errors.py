class DigestError(Exception):
    """Base class for all hndigest errors."""


class ConfigError(DigestError):
    """Raised at start-up when a configuration entry is missing or invalid."""


class StoreError(DigestError):
    """Raised when the item store cannot read or write its table."""


class DuplicateKeyError(StoreError):
    """Raised when an insert targets a (source, external_id) already stored."""

    def __init__(self, source_key: str, external_id: str):
        self.source_key = source_key
        self.external_id = external_id
        super().__init__(f"Item already stored: {source_key}/{external_id}")


class DeliveryError(DigestError):
    """Raised when a sender fails to deliver a digest."""
