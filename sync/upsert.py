"""Create-or-update of local entities keyed by external references."""
import logging
from dataclasses import dataclass
from typing import Any, Dict, NamedTuple, Optional, Tuple

from storage.dynamodb_store import DynamoDBRecordStore, LocalKey
from sync.errors import Conflict
from sync.resolver import ExternalReferenceResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntitySpec:
    """
    Field policy of one entity kind.

    - insert_fields: columns written when the row is created
    - update_fields: columns overwritten on every later sync; anything else
      keeps the value it was inserted with (or was set to elsewhere)
    - scope_field: parent id column for kinds keyed by (parent id, sequence)
    - owner_field: parent id column that must not change once inserted
    """
    kind: str
    insert_fields: Tuple[str, ...]
    update_fields: Tuple[str, ...]
    scope_field: Optional[str] = None
    owner_field: Optional[str] = None


# Event.description and Event.hashtag are only written on insert.
EVENT = EntitySpec(
    kind='Event',
    insert_fields=(
        'title', 'slug', 'description', 'hashtag', 'time_zone',
        'start_time', 'end_time', 'member_group'
    ),
    update_fields=('title', 'time_zone', 'start_time', 'end_time', 'slug')
)

VENUE = EntitySpec(
    kind='Venue',
    insert_fields=(
        'name', 'postal_address', 'latitude', 'longitude', 'location_hint', 'created_by'
    ),
    update_fields=('name', 'postal_address', 'latitude', 'longitude', 'location_hint')
)

# company, title, location, company_url and member are not fed upstream.
LEADER = EntitySpec(
    kind='Leader',
    insert_fields=('name', 'bio', 'personal_url', 'twitter_username'),
    update_fields=('name', 'bio', 'personal_url', 'twitter_username')
)

TIME_SLOT = EntitySpec(
    kind='TimeSlot',
    insert_fields=('event', 'label', 'start_time', 'end_time'),
    update_fields=('label', 'start_time', 'end_time'),
    owner_field='event'
)

EVENT_SESSION = EntitySpec(
    kind='EventSession',
    insert_fields=('event', 'title', 'description', 'hashtag', 'venue', 'time_slot'),
    update_fields=('title', 'description', 'hashtag', 'venue', 'time_slot'),
    scope_field='event',
    owner_field='event'
)

ENTITY_SPECS = {spec.kind: spec for spec in (EVENT, VENUE, LEADER, TIME_SLOT, EVENT_SESSION)}


class UpsertOutcome(NamedTuple):
    key: LocalKey
    created: bool


class EntityUpserter:
    """Idempotent upsert of one entity kind."""

    def __init__(self, store: DynamoDBRecordStore, spec: EntitySpec):
        self.store = store
        self.spec = spec
        self.resolver = ExternalReferenceResolver(store, spec.kind)

    def upsert(self, source: str, upstream_id: int, fields: Dict[str, Any]) -> UpsertOutcome:
        """
        Insert the entity if (source, upstream id) is unknown, else update it.

        Updates overwrite exactly the EntitySpec's update_fields. Inserts write the
        insert_fields and bind the external reference in the same transaction.

        Args:
            source: Upstream source tag
            upstream_id: Id of the entity in the upstream feed
            fields: Column values; must cover the EntitySpec's insert_fields

        Returns:
            UpsertOutcome with the local key and whether a row was created

        Raises:
            Conflict: If a concurrent import bound the reference first, or
                the reference resolves to a row owned by another parent
        """
        missing = [name for name in self.spec.insert_fields if name not in fields]
        if missing:
            raise ValueError(f"{self.spec.kind} fields missing: {', '.join(missing)}")

        key = self.resolver.resolve(source, upstream_id)
        if key is not None:
            self._check_owner(key, fields, source, upstream_id)
            self.store.update(
                self.spec.kind,
                key,
                {name: fields[name] for name in self.spec.update_fields}
            )
            logger.debug(f"Updated {self.spec.kind} {key} from {source} {upstream_id}")
            return UpsertOutcome(key, False)

        scope = fields[self.spec.scope_field] if self.spec.scope_field else None
        key = self.store.insert(
            self.spec.kind,
            {name: fields[name] for name in self.spec.insert_fields},
            scope=scope,
            reference=(source, upstream_id)
        )
        logger.debug(f"Inserted {self.spec.kind} {key} from {source} {upstream_id}")
        return UpsertOutcome(key, True)

    def _check_owner(self, key: LocalKey, fields: Dict[str, Any], source: str, upstream_id: int) -> None:
        owner_field = self.spec.owner_field
        if owner_field is None:
            return

        if owner_field == self.spec.scope_field:
            owner = key[0]
        else:
            row = self.store.get(self.spec.kind, key)
            owner = row.get(owner_field) if row else None

        if owner is not None and owner != fields[owner_field]:
            raise Conflict(
                f"{source} {self.spec.kind} {upstream_id} belongs to {owner_field} {owner}, "
                f"not {fields[owner_field]}",
                entity_kind=self.spec.kind
            )
