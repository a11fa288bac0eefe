"""Shared fixtures: mocked DynamoDB table and NFJS show documents."""

import boto3
import pytest
from moto import mock_aws

from storage.dynamodb_store import DynamoDBRecordStore

TABLE_NAME = 'test-nfjs-events'
SHOW_ID = 271

# Upstream ids picked so that the highlighted records land on fixed local ids:
# speaker 38 is the 29th speaker, time slot 6311 the 16th time slot.
SPEAKER_IDS = list(range(10, 95))            # 85 speakers
TIME_SLOT_IDS = list(range(6296, 6332))      # 36 time slots
SESSION_IDS = list(range(24400, 24512))      # 112 sessions


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def dynamodb_table():
    """Create a mock DynamoDB table for testing."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')

        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {'AttributeName': 'pk', 'KeyType': 'HASH'},
                {'AttributeName': 'sk', 'KeyType': 'RANGE'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'pk', 'AttributeType': 'S'},
                {'AttributeName': 'sk', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )

        yield table


@pytest.fixture
def store(dynamodb_table):
    """Create a DynamoDBRecordStore on the mock table."""
    return DynamoDBRecordStore(TABLE_NAME, region_name='us-east-1')


def _speaker(speaker_id):
    if speaker_id == 38:
        return {
            'id': 38,
            'firstName': 'Craig',
            'lastName': 'Walls',
            'bio': ' Craig Walls is the Spring Social Project Lead. ',
            'blog': 'http://blog.springsource.com/author/cwalls/',
            'twitter': 'habuma'
        }
    return {
        'id': speaker_id,
        'firstName': 'Speaker',
        'lastName': str(speaker_id),
        'bio': f'Bio of speaker {speaker_id}',
        'blog': None,
        'twitter': None
    }


def _time_slot(index, slot_id):
    if slot_id == 6311:
        return {
            'id': 6311,
            'label': 'DINNER',
            'startTime': '2011-10-26T18:30:00',
            'endTime': '2011-10-26T19:30:00'
        }
    day = 25 + index // 12
    hour = 8 + index % 12
    return {
        'id': slot_id,
        'label': f'SLOT {index + 1}',
        'startTime': f'2011-10-{day}T{hour:02d}:00:00',
        'endTime': f'2011-10-{day}T{hour:02d}:50:00'
    }


def _session(index, session_id):
    return {
        'id': session_id,
        'title': f'Talk {index + 1}',
        'summary': f'Summary of talk {index + 1}',
        'hashtag': f'#talk{index + 1}',
        'timeSlotId': TIME_SLOT_IDS[index % len(TIME_SLOT_IDS)],
        'speakerIds': [SPEAKER_IDS[index % len(SPEAKER_IDS)]]
    }


def build_show():
    """The SpringOne 2GX show as first published upstream."""
    return {
        'id': SHOW_ID,
        'name': 'SpringOne 2GX',
        'shortName': 'S2GX',
        'description': None,
        'hashtag': '#s2gx',
        'timeZone': 'America/Chicago',
        'firstDay': '2011-10-25',
        'lastDay': '2011-10-28',
        'venue': {
            'id': 12,
            'name': 'Chicago Marriott Downtown Magnificent Mile',
            'address1': '540 North Michigan Avenue',
            'address2': None,
            'city': 'Chicago',
            'state': 'IL',
            'zip': '60611',
            'latitude': 41.8920052,
            'longitude': -87.6247001
        },
        'speakers': [_speaker(speaker_id) for speaker_id in SPEAKER_IDS],
        'timeSlots': [_time_slot(i, slot_id) for i, slot_id in enumerate(TIME_SLOT_IDS)],
        'sessions': [_session(i, session_id) for i, session_id in enumerate(SESSION_IDS)]
    }


def build_updated_show():
    """The same show after upstream edits plus one new speaker, slot and talk."""
    show = build_show()
    show.update({
        'name': 'SpringOne/2GX',
        'shortName': 'SGX',
        'description': 'Now with a description',
        'timeZone': 'America/Boise',
        'firstDay': '2012-06-09',
        'lastDay': '2012-06-12'
    })
    show['venue'].update({
        'name': 'Pocatello Convention Center',
        'address1': '1234 South Arizona Drive',
        'city': 'Pocatello',
        'state': 'ID',
        'zip': '83201'
    })

    craig = next(s for s in show['speakers'] if s['id'] == 38)
    craig.update({
        'firstName': 'Mr. Craig',
        'bio': 'Craig Walls is the Spring Social Project Lead and an avid collector '
               'of American Way magazines.',
        'blog': 'http://blog.springsource.com/author/craigwalls/',
        'twitter': 'habumadude'
    })

    dinner = next(t for t in show['timeSlots'] if t['id'] == 6311)
    dinner.update({
        'label': 'SUPPER',
        'startTime': '2012-06-10T18:30:00',
        'endTime': '2012-06-10T19:30:00'
    })

    show['sessions'][0]['title'] = 'Talk 1, revised'

    show['speakers'].append({
        'id': 500,
        'firstName': 'Josh',
        'lastName': 'Long',
        'bio': 'Spring Developer Advocate',
        'blog': 'http://joshlong.com',
        'twitter': 'starbuxman'
    })
    show['timeSlots'].append({
        'id': 6400,
        'label': 'KEYNOTE',
        'startTime': '2012-06-09T19:00:00',
        'endTime': '2012-06-09T20:00:00'
    })
    show['sessions'].append({
        'id': 24600,
        'title': 'Spring in the Cloud',
        'summary': 'Deploying Spring applications to the cloud',
        'hashtag': '#springcloud',
        'timeSlotId': 6400,
        'speakerIds': [500, 38]
    })
    return show


@pytest.fixture
def show_document():
    """Initial show document."""
    return build_show()


@pytest.fixture
def updated_show_document():
    """Updated show document."""
    return build_updated_show()


@pytest.fixture
def small_show():
    """A minimal valid show with one speaker, slot and talk."""
    return {
        'id': 297,
        'name': 'Test Event',
        'shortName': 'test',
        'description': 'Test Event Description',
        'hashtag': '#test',
        'timeZone': 'America/New_York',
        'firstDay': '2012-10-15',
        'lastDay': '2012-10-18',
        'venue': {
            'id': 3,
            'name': 'Some Fancy Hotel',
            'address1': '1234 North Street',
            'city': 'Chicago',
            'state': 'IL',
            'zip': '60605',
            'latitude': 41.89001,
            'longitude': -87.677765
        },
        'speakers': [{
            'id': 1234,
            'firstName': 'Craig',
            'lastName': 'Walls',
            'bio': 'Craig is the Spring Social project lead',
            'blog': 'http://www.habuma.com',
            'twitter': 'habuma'
        }],
        'timeSlots': [{
            'id': 7296,
            'label': 'Time Slot 1',
            'startTime': '2012-10-15T09:00:00',
            'endTime': '2012-10-15T10:30:00'
        }],
        'sessions': [{
            'id': 34409,
            'title': "What's new in Spring",
            'summary': "Come find out what's new in Spring",
            'hashtag': '#newspring',
            'timeSlotId': 7296,
            'speakerIds': [1234]
        }]
    }
