"""Import of one upstream NFJS show into the local event store."""
import logging
from typing import Dict, Optional

from botocore.exceptions import ClientError

from feed.nfjs_client import NFJSFeedClient
from processor.models import LoadResult, ShowPayload
from processor.show_processor import ShowProcessor
from storage.dynamodb_store import DynamoDBRecordStore
from sync.errors import ShowImportError, StorageError
from sync.upsert import (
    EVENT,
    EVENT_SESSION,
    LEADER,
    TIME_SLOT,
    VENUE,
    EntityUpserter,
)

logger = logging.getLogger(__name__)

EVENT_VENUE = 'EventVenue'
EVENT_SESSION_LEADER = 'EventSessionLeader'


class FeedLoader:
    """
    Loads shows from the NFJS feed.

    Writes follow a fixed order because later upserts consume the local ids
    produced by earlier ones: Event, Venue, Leaders, TimeSlots, EventSessions.
    Nothing is written until the show was fetched and its whole payload built.
    """

    def __init__(
        self,
        client: NFJSFeedClient,
        store: DynamoDBRecordStore,
        source: str = 'NFJS',
        member_group: int = 1,
        venue_created_by: int = 1,
        processor: Optional[ShowProcessor] = None
    ):
        """
        Args:
            client: Feed client used to fetch show documents
            store: Record store receiving the synchronized rows
            source: Tag stored on every external reference
            member_group: Local group owning imported events
            venue_created_by: Local member recorded as creator of new venues
            processor: Payload builder, defaults to ShowProcessor()
        """
        self.client = client
        self.store = store
        self.source = source
        self.member_group = member_group
        self.venue_created_by = venue_created_by
        self.processor = processor or ShowProcessor()
        self.events = EntityUpserter(store, EVENT)
        self.venues = EntityUpserter(store, VENUE)
        self.leaders = EntityUpserter(store, LEADER)
        self.time_slots = EntityUpserter(store, TIME_SLOT)
        self.sessions = EntityUpserter(store, EVENT_SESSION)

    def load_event_data(self, show_id: int) -> LoadResult:
        """
        Fetch one show and merge it into the store.

        Args:
            show_id: Upstream show id

        Returns:
            LoadResult with per-kind insert and update counts

        Raises:
            FetchError: If the show could not be fetched; nothing is written
            ValidationError: If the show payload is malformed; nothing is written
            Conflict: If a uniqueness check failed while writing
            StorageError: If the record store failed for another reason
        """
        logger.info(f"Loading {self.source} show {show_id}")
        document = self.client.fetch_show(show_id)
        payload = self.processor.build_payload(show_id, document)

        result = LoadResult(show_id=show_id)
        self._write(payload, result)

        logger.info(
            f"Loaded {self.source} show {show_id} as event {result.event_id}: "
            f"{result.total_inserted} inserted, {result.total_updated} updated",
            extra={'show_id': show_id, 'inserted': result.inserted, 'updated': result.updated}
        )
        return result

    def _write(self, payload: ShowPayload, result: LoadResult) -> None:
        show_id = payload.event.source_id
        kind = EVENT.kind
        try:
            event_fields = payload.event.to_fields()
            event_fields['member_group'] = self.member_group
            event_id = self._upsert(self.events, payload.event.source_id, event_fields, result)
            result.event_id = event_id

            kind = VENUE.kind
            venue_fields = payload.venue.to_fields()
            venue_fields['created_by'] = self.venue_created_by
            venue_id = self._upsert(self.venues, payload.venue.source_id, venue_fields, result)
            self.store.link(EVENT_VENUE, (event_id, venue_id), {'event': event_id, 'venue': venue_id})

            kind = LEADER.kind
            leader_ids: Dict[int, int] = {}
            for leader in payload.leaders:
                leader_ids[leader.source_id] = self._upsert(
                    self.leaders, leader.source_id, leader.to_fields(), result
                )

            kind = TIME_SLOT.kind
            time_slot_ids: Dict[int, int] = {}
            for time_slot in payload.time_slots:
                fields = time_slot.to_fields()
                fields['event'] = event_id
                time_slot_ids[time_slot.source_id] = self._upsert(
                    self.time_slots, time_slot.source_id, fields, result
                )

            kind = EVENT_SESSION.kind
            for session in payload.sessions:
                fields = session.to_fields()
                fields.update({
                    'event': event_id,
                    'venue': venue_id,
                    'time_slot': time_slot_ids[session.time_slot_source_id]
                })
                session_key = self._upsert(self.sessions, session.source_id, fields, result)
                for rank, leader_source_id in enumerate(session.leader_source_ids, start=1):
                    leader_id = leader_ids[leader_source_id]
                    self.store.link(
                        EVENT_SESSION_LEADER,
                        session_key + (leader_id,),
                        {
                            'event': session_key[0],
                            'session': session_key[1],
                            'leader': leader_id,
                            'rank': rank
                        }
                    )
        except ShowImportError as e:
            logger.error(
                f"Import of show {show_id} failed at {kind}: {e}",
                extra={'show_id': show_id, 'entity_kind': kind, 'error_type': type(e).__name__}
            )
            raise e.with_context(show_id=show_id, entity_kind=kind)
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code')
            logger.error(
                f"Import of show {show_id} failed at {kind}: {e}",
                extra={'show_id': show_id, 'entity_kind': kind, 'error_type': code}
            )
            raise StorageError(
                f"Record store failed ({code}): {e}",
                show_id=show_id,
                entity_kind=kind
            ) from e

    def _upsert(self, upserter: EntityUpserter, upstream_id: int, fields: dict, result: LoadResult):
        outcome = upserter.upsert(self.source, upstream_id, fields)
        result.record(upserter.spec.kind, outcome.created)
        return outcome.key
