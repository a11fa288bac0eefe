"""Builds typed payloads from decoded NFJS show documents."""
import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from processor.models import (
    EventData,
    EventSessionData,
    LeaderData,
    ShowPayload,
    TimeSlotData,
    VenueData,
)
from sync.errors import ValidationError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S'


class ShowProcessor:
    """Validates and normalizes one upstream show into its five record sets."""

    DATE_FORMATS = [
        '%Y-%m-%d',      # ISO 8601
        '%m/%d/%Y',      # US format
    ]

    TIMESTAMP_FORMATS = [
        '%Y-%m-%dT%H:%M:%S',
        '%Y-%m-%dT%H:%M',
        '%Y-%m-%d %H:%M:%S',
        '%Y-%m-%d %H:%M',
        '%m/%d/%Y %I:%M %p',
    ]

    def build_payload(self, show_id: int, document: Dict[str, Any]) -> ShowPayload:
        """
        Build the typed payload for one show.

        Every record is validated before anything is returned, so a bad
        field anywhere in the show rejects the whole show.

        Args:
            show_id: Upstream show id that was requested
            document: Decoded show document

        Returns:
            ShowPayload with event, venue, leaders, time slots and sessions

        Raises:
            ValidationError: If a required field is missing or unparsable
        """
        try:
            payload = self._build(show_id, document)
        except ValidationError as e:
            raise e.with_context(show_id=show_id)

        logger.info(
            f"Built payload for show {show_id}: {len(payload.leaders)} leaders, "
            f"{len(payload.time_slots)} time slots, {len(payload.sessions)} sessions"
        )
        return payload

    def _build(self, show_id: int, document: Dict[str, Any]) -> ShowPayload:
        document_id = self._require_int(document, 'id', 'Event')
        if document_id != show_id:
            raise ValidationError(
                f"Feed returned show {document_id} when show {show_id} was requested",
                entity_kind='Event'
            )

        event = self._parse_event(show_id, document)

        venue_doc = document.get('venue')
        if not isinstance(venue_doc, dict):
            raise ValidationError("Show has no venue", entity_kind='Venue')
        venue = self._parse_venue(venue_doc)

        leaders = self._unique(
            [self._parse_leader(item) for item in self._items(document, 'speakers', 'Leader')],
            'Leader'
        )
        time_slots = self._unique(
            [self._parse_time_slot(item) for item in self._items(document, 'timeSlots', 'TimeSlot')],
            'TimeSlot'
        )
        sessions = self._unique(
            [self._parse_session(item) for item in self._items(document, 'sessions', 'EventSession')],
            'EventSession'
        )

        self._check_session_references(sessions, leaders, time_slots)

        return ShowPayload(
            event=event,
            venue=venue,
            leaders=leaders,
            time_slots=time_slots,
            sessions=sessions
        )

    def _parse_event(self, show_id: int, doc: Dict[str, Any]) -> EventData:
        time_zone = self._require_str(doc, 'timeZone', 'Event')
        try:
            ZoneInfo(time_zone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValidationError(
                f"Unknown time zone '{time_zone}'", entity_kind='Event'
            ) from e

        first_day = self._parse_date(self._require_str(doc, 'firstDay', 'Event'), 'Event')
        last_day = self._parse_date(self._require_str(doc, 'lastDay', 'Event'), 'Event')
        if last_day < first_day:
            raise ValidationError(
                f"Show ends ({last_day:%Y-%m-%d}) before it starts ({first_day:%Y-%m-%d})",
                entity_kind='Event'
            )

        return EventData(
            source_id=show_id,
            title=self._require_str(doc, 'name', 'Event'),
            slug=self._require_str(doc, 'shortName', 'Event'),
            description=self._optional_str(doc.get('description')),
            hashtag=self._optional_str(doc.get('hashtag')),
            time_zone=time_zone,
            start_time=first_day.replace(hour=0, minute=0, second=0).strftime(TIMESTAMP_FORMAT),
            end_time=last_day.replace(hour=23, minute=59, second=59).strftime(TIMESTAMP_FORMAT)
        )

    def _parse_venue(self, doc: Dict[str, Any]) -> VenueData:
        city = self._optional_str(doc.get('city'))
        state = self._optional_str(doc.get('state'))
        zip_code = self._optional_str(doc.get('zip'))

        locality = ', '.join(part for part in (city, state) if part)
        address_parts = [
            self._optional_str(doc.get('address1')),
            self._optional_str(doc.get('address2')),
            ' '.join(part for part in (locality, zip_code) if part),
        ]

        return VenueData(
            source_id=self._require_int(doc, 'id', 'Venue'),
            name=self._require_str(doc, 'name', 'Venue'),
            postal_address=' '.join(part for part in address_parts if part),
            latitude=self._optional_float(doc, 'latitude', 'Venue'),
            longitude=self._optional_float(doc, 'longitude', 'Venue'),
            location_hint=locality or None
        )

    def _parse_leader(self, doc: Dict[str, Any]) -> LeaderData:
        first_name = self._optional_str(doc.get('firstName'))
        last_name = self._optional_str(doc.get('lastName'))
        name = ' '.join(part for part in (first_name, last_name) if part)
        if not name:
            raise ValidationError(
                f"Speaker {doc.get('id')} has no name", entity_kind='Leader'
            )

        return LeaderData(
            source_id=self._require_int(doc, 'id', 'Leader'),
            name=name,
            bio=self._optional_str(doc.get('bio')),
            personal_url=self._optional_str(doc.get('blog')),
            twitter_username=self._optional_str(doc.get('twitter'))
        )

    def _parse_time_slot(self, doc: Dict[str, Any]) -> TimeSlotData:
        source_id = self._require_int(doc, 'id', 'TimeSlot')
        start = self._parse_timestamp(self._require_str(doc, 'startTime', 'TimeSlot'), 'TimeSlot')
        end = self._parse_timestamp(self._require_str(doc, 'endTime', 'TimeSlot'), 'TimeSlot')
        if end < start:
            raise ValidationError(
                f"Time slot {source_id} ends before it starts", entity_kind='TimeSlot'
            )

        return TimeSlotData(
            source_id=source_id,
            label=self._optional_str(doc.get('label')) or '',
            start_time=start.strftime(TIMESTAMP_FORMAT),
            end_time=end.strftime(TIMESTAMP_FORMAT)
        )

    def _parse_session(self, doc: Dict[str, Any]) -> EventSessionData:
        speaker_ids = doc.get('speakerIds') or []
        if not isinstance(speaker_ids, list):
            raise ValidationError(
                f"Session {doc.get('id')} has malformed speakerIds", entity_kind='EventSession'
            )

        return EventSessionData(
            source_id=self._require_int(doc, 'id', 'EventSession'),
            title=self._require_str(doc, 'title', 'EventSession'),
            description=self._optional_str(doc.get('summary')),
            hashtag=self._optional_str(doc.get('hashtag')),
            time_slot_source_id=self._require_int(doc, 'timeSlotId', 'EventSession'),
            leader_source_ids=[self._to_int(value, 'speakerIds', 'EventSession') for value in speaker_ids]
        )

    def _check_session_references(
        self,
        sessions: List[EventSessionData],
        leaders: List[LeaderData],
        time_slots: List[TimeSlotData]
    ) -> None:
        leader_ids = {leader.source_id for leader in leaders}
        time_slot_ids = {time_slot.source_id for time_slot in time_slots}

        for session in sessions:
            if session.time_slot_source_id not in time_slot_ids:
                raise ValidationError(
                    f"Session {session.source_id} references unknown time slot "
                    f"{session.time_slot_source_id}",
                    entity_kind='EventSession'
                )
            unknown = [i for i in session.leader_source_ids if i not in leader_ids]
            if unknown:
                raise ValidationError(
                    f"Session {session.source_id} references unknown speakers {unknown}",
                    entity_kind='EventSession'
                )

    def _unique(self, records: list, kind: str) -> list:
        """Keep the first record per upstream id."""
        seen = set()
        unique = []
        for record in records:
            if record.source_id in seen:
                logger.warning(f"Skipping repeated {kind} with upstream id {record.source_id}")
                continue
            seen.add(record.source_id)
            unique.append(record)
        return unique

    def _items(self, doc: Dict[str, Any], key: str, kind: str) -> List[Dict[str, Any]]:
        items = doc.get(key) or []
        if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
            raise ValidationError(f"Field '{key}' must be a list of objects", entity_kind=kind)
        return items

    def _parse_date(self, value: str, kind: str) -> datetime:
        for fmt in self.DATE_FORMATS:
            try:
                return datetime.strptime(value.strip(), fmt)
            except ValueError:
                continue
        raise ValidationError(f"Unparsable date '{value}'", entity_kind=kind)

    def _parse_timestamp(self, value: str, kind: str) -> datetime:
        for fmt in self.TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(value.strip(), fmt)
            except ValueError:
                continue
        raise ValidationError(f"Unparsable timestamp '{value}'", entity_kind=kind)

    def _require_str(self, doc: Dict[str, Any], key: str, kind: str) -> str:
        value = self._optional_str(doc.get(key))
        if not value:
            raise ValidationError(f"Missing required field '{key}'", entity_kind=kind)
        return value

    def _require_int(self, doc: Dict[str, Any], key: str, kind: str) -> int:
        value = doc.get(key)
        if value is None:
            raise ValidationError(f"Missing required field '{key}'", entity_kind=kind)
        return self._to_int(value, key, kind)

    def _to_int(self, value: Any, key: str, kind: str) -> int:
        if isinstance(value, bool):
            raise ValidationError(f"Field '{key}' is not an integer: {value!r}", entity_kind=kind)
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"Field '{key}' is not an integer: {value!r}", entity_kind=kind
            ) from e

    def _optional_float(self, doc: Dict[str, Any], key: str, kind: str) -> Optional[float]:
        value = doc.get(key)
        if value is None or value == '':
            return None
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"Field '{key}' is not a number: {value!r}", entity_kind=kind
            ) from e
        # json accepts NaN and Infinity, DynamoDB does not
        if not math.isfinite(number):
            raise ValidationError(
                f"Field '{key}' is not a finite number: {value!r}", entity_kind=kind
            )
        return number

    def _optional_str(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None
