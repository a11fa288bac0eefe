"""Resolution of upstream (source, id) pairs to local entity keys."""
import logging
from typing import Optional

from storage.dynamodb_store import DynamoDBRecordStore, LocalKey
from sync.errors import DuplicateMapping

logger = logging.getLogger(__name__)


class ExternalReferenceResolver:
    """
    External references of one entity kind.

    At most one local key exists per (source, upstream id), and at most one
    upstream id per local key and source. The store enforces both with
    conditional writes, so a racing second binding fails instead of
    silently duplicating.
    """

    def __init__(self, store: DynamoDBRecordStore, kind: str):
        self.store = store
        self.kind = kind

    def resolve(self, source: str, upstream_id: int) -> Optional[LocalKey]:
        """Return the bound local key, or None when the pair is unknown."""
        return self.store.find_reference(self.kind, source, upstream_id)

    def bind(self, source: str, upstream_id: int, local_key: LocalKey) -> None:
        """
        Record that (source, upstream id) maps to local_key.

        Binding the same pair to the same key again is a no-op.

        Raises:
            DuplicateMapping: If either side is already bound elsewhere
        """
        existing = self.resolve(source, upstream_id)
        if existing == local_key:
            return
        if existing is not None:
            raise DuplicateMapping(
                f"{source} {self.kind} {upstream_id} is bound to {existing}, not {local_key}",
                entity_kind=self.kind
            )
        self.store.put_reference(self.kind, source, upstream_id, local_key)
        logger.debug(f"Bound {source} {self.kind} {upstream_id} -> {local_key}")
