"""Data models for show processing."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class EventData:
    """Event-level fields of an upstream show."""
    source_id: int
    title: str
    slug: str
    description: Optional[str]
    hashtag: Optional[str]
    time_zone: str
    start_time: str
    end_time: str

    def to_fields(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'slug': self.slug,
            'description': self.description,
            'hashtag': self.hashtag,
            'time_zone': self.time_zone,
            'start_time': self.start_time,
            'end_time': self.end_time
        }


@dataclass
class VenueData:
    """Venue hosting an upstream show."""
    source_id: int
    name: str
    postal_address: str
    latitude: Optional[float]
    longitude: Optional[float]
    location_hint: Optional[str]

    def to_fields(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'postal_address': self.postal_address,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'location_hint': self.location_hint
        }


@dataclass
class LeaderData:
    """Speaker of an upstream show."""
    source_id: int
    name: str
    bio: Optional[str]
    personal_url: Optional[str]
    twitter_username: Optional[str]

    def to_fields(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'bio': self.bio,
            'personal_url': self.personal_url,
            'twitter_username': self.twitter_username
        }


@dataclass
class TimeSlotData:
    """Labelled time slot of an upstream show."""
    source_id: int
    label: str
    start_time: str
    end_time: str

    def to_fields(self) -> Dict[str, Any]:
        return {
            'label': self.label,
            'start_time': self.start_time,
            'end_time': self.end_time
        }


@dataclass
class EventSessionData:
    """Talk of an upstream show, referencing slot and speakers by upstream id."""
    source_id: int
    title: str
    description: Optional[str]
    hashtag: Optional[str]
    time_slot_source_id: int
    leader_source_ids: List[int] = field(default_factory=list)

    def to_fields(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'description': self.description,
            'hashtag': self.hashtag
        }


@dataclass
class ShowPayload:
    """Typed record sets built from one upstream show document."""
    event: EventData
    venue: VenueData
    leaders: List[LeaderData]
    time_slots: List[TimeSlotData]
    sessions: List[EventSessionData]


@dataclass
class LoadResult:
    """Result of one show import."""
    show_id: int
    event_id: Optional[int] = None
    inserted: Dict[str, int] = field(default_factory=dict)
    updated: Dict[str, int] = field(default_factory=dict)

    def record(self, kind: str, created: bool) -> None:
        """Count one upsert of the given entity kind."""
        counts = self.inserted if created else self.updated
        counts[kind] = counts.get(kind, 0) + 1

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())

    @property
    def total_updated(self) -> int:
        return sum(self.updated.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'show_id': self.show_id,
            'event_id': self.event_id,
            'inserted': dict(self.inserted),
            'updated': dict(self.updated)
        }
