"""Unit tests for DynamoDB record store."""
from decimal import Decimal

import pytest

from storage.dynamodb_store import decode_key, encode_key
from sync.errors import Conflict, DuplicateMapping


def test_encode_decode_key():
    """Test simple and composite keys survive encoding."""
    assert encode_key(7) == '7'
    assert encode_key((1, 12)) == '1#12'
    assert decode_key('7') == 7
    assert decode_key('1#12') == (1, 12)


def test_next_id_auto_increments(store):
    """Test ids start at 1 and increase per kind."""
    assert store.next_id('Leader') == 1
    assert store.next_id('Leader') == 2
    assert store.next_id('Venue') == 1


def test_next_id_scoped(store):
    """Test scoped ids are counted per parent."""
    assert store.next_id('EventSession', scope=1) == 1
    assert store.next_id('EventSession', scope=1) == 2
    assert store.next_id('EventSession', scope=2) == 1


def test_insert_and_get(store):
    """Test insert returns the new id and the row reads back."""
    key = store.insert('Venue', {
        'name': 'Some Fancy Hotel',
        'postal_address': '1234 North Street Chicago, IL 60605',
        'latitude': 41.89001,
        'longitude': -87.677765,
        'location_hint': None
    })

    assert key == 1
    row = store.get('Venue', 1)
    assert row['id'] == 1
    assert row['name'] == 'Some Fancy Hotel'
    assert row['latitude'] == 41.89001
    assert row['longitude'] == -87.677765
    assert row['location_hint'] is None


def test_insert_scoped_returns_composite_key(store):
    """Test kinds keyed by (parent, sequence) get tuple keys."""
    first = store.insert('EventSession', {'event': 1, 'title': 'A'}, scope=1)
    second = store.insert('EventSession', {'event': 1, 'title': 'B'}, scope=1)

    assert first == (1, 1)
    assert second == (1, 2)
    assert store.get('EventSession', (1, 2))['title'] == 'B'


def test_get_missing_returns_none(store):
    assert store.get('Event', 42) is None


def test_insert_with_reference_binds_it(store):
    """Test the reference is written with the row."""
    key = store.insert('Leader', {'name': 'Craig Walls'}, reference=('NFJS', 38))

    assert store.find_reference('Leader', 'NFJS', 38) == key
    assert store.find_reference('Leader', 'NFJS', 39) is None
    assert store.find_reference('Leader', 'OTHER', 38) is None


def test_insert_with_taken_reference_conflicts_and_writes_nothing(store):
    """Test a losing insert leaves no orphan row behind."""
    store.insert('Leader', {'name': 'Craig Walls'}, reference=('NFJS', 38))

    with pytest.raises(Conflict):
        store.insert('Leader', {'name': 'Craig Walls again'}, reference=('NFJS', 38))

    assert store.count('Leader') == 1
    assert store.find_reference('Leader', 'NFJS', 38) == 1


def test_update_overwrites_given_fields_only(store):
    """Test update sets the listed columns and keeps the others."""
    store.insert('Event', {'title': 'Old', 'description': 'Kept'})

    store.update('Event', 1, {'title': 'New'})

    row = store.get('Event', 1)
    assert row['title'] == 'New'
    assert row['description'] == 'Kept'


def test_update_can_null_a_field(store):
    store.insert('Leader', {'name': 'Craig', 'bio': 'Bio'})

    store.update('Leader', 1, {'bio': None})

    assert store.get('Leader', 1)['bio'] is None


def test_update_missing_row_conflicts(store):
    with pytest.raises(Conflict):
        store.update('Event', 99, {'title': 'Ghost'})


def test_query_and_count(store):
    """Test query returns every row of a kind, filtered by predicate."""
    for label in ('MORNING', 'LUNCH', 'DINNER'):
        store.insert('TimeSlot', {'event': 1, 'label': label})
    store.insert('TimeSlot', {'event': 2, 'label': 'MORNING'})

    assert store.count('TimeSlot') == 4
    assert store.count('Event') == 0
    assert len(store.query('TimeSlot')) == 4
    rows = store.query('TimeSlot', lambda row: row['event'] == 1)
    assert sorted(row['label'] for row in rows) == ['DINNER', 'LUNCH', 'MORNING']


def test_count_excludes_references_and_counters(store):
    store.insert('Leader', {'name': 'Craig'}, reference=('NFJS', 38))

    assert store.count('Leader') == 1


def test_put_reference_same_binding_is_idempotent(store):
    store.put_reference('Event', 'NFJS', 271, 1)
    store.put_reference('Event', 'NFJS', 271, 1)

    assert store.find_reference('Event', 'NFJS', 271) == 1


def test_put_reference_to_other_local_id_fails(store):
    store.put_reference('Event', 'NFJS', 271, 1)

    with pytest.raises(DuplicateMapping):
        store.put_reference('Event', 'NFJS', 271, 2)

    assert store.find_reference('Event', 'NFJS', 271) == 1


def test_put_reference_local_id_already_mapped_fails(store):
    """Test a local id maps from at most one upstream id per source."""
    store.put_reference('Event', 'NFJS', 271, 1)

    with pytest.raises(DuplicateMapping):
        store.put_reference('Event', 'NFJS', 272, 1)

    store.put_reference('Event', 'OTHER', 272, 1)
    assert store.find_reference('Event', 'OTHER', 272) == 1


def test_put_reference_composite_key(store):
    store.put_reference('EventSession', 'NFJS', 24409, (1, 3))

    assert store.find_reference('EventSession', 'NFJS', 24409) == (1, 3)


def test_link_inserts_once(store):
    """Test association rows are inserted if absent and never duplicated."""
    assert store.link('EventVenue', (1, 1), {'event': 1, 'venue': 1}) is True
    assert store.link('EventVenue', (1, 1), {'event': 1, 'venue': 1}) is False
    assert store.link('EventVenue', (1, 2), {'event': 1, 'venue': 2}) is True

    assert store.count('EventVenue') == 2


def test_insert_writes_plain_typed_attributes(store, dynamodb_table):
    """Test transactional writes land as ordinary string, number and null attributes."""
    store.insert('Venue', {'name': 'Some Fancy Hotel', 'latitude': 41.89001, 'location_hint': None},
                 reference=('NFJS', 3))

    item = dynamodb_table.get_item(Key={'pk': 'Venue', 'sk': '1'})['Item']
    assert item['name'] == 'Some Fancy Hotel'
    assert item['latitude'] == Decimal('41.89001')
    assert item['location_hint'] is None

    reference = dynamodb_table.get_item(Key={'pk': 'ref#Venue', 'sk': 'NFJS#3'})['Item']
    assert reference['local_id'] == '1'
    assert reference['source_id'] == 3
