"""AWS Lambda handler for NFJS show synchronization."""
import json
import logging
import os
import time
from typing import Any, Dict, List

from feed.nfjs_client import NFJSFeedClient
from storage.dynamodb_store import DynamoDBRecordStore
from sync.errors import ShowImportError
from sync.loader import FeedLoader


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    RESERVED = set(logging.LogRecord(
        'x', logging.INFO, '', 0, '', None, None
    ).__dict__) | {'message', 'asctime'}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        # Fields passed through extra={...}
        for key, value in record.__dict__.items():
            if key not in self.RESERVED and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def parse_show_ids(event: Dict[str, Any], default: str = '') -> List[int]:
    """
    Read the show ids to import.

    The invocation payload wins over the SHOW_IDS default: either
    ``{"show_id": 271}``, ``{"show_ids": [271, 272]}`` or
    ``{"show_ids": "271,272"}``.

    Raises:
        ValueError: If an id is not an integer or show_ids is not a list
    """
    if event.get('show_ids') is not None:
        raw_ids = event['show_ids']
        if isinstance(raw_ids, str):
            raw_ids = _split_ids(raw_ids)
        elif not isinstance(raw_ids, list):
            raise ValueError(f"show_ids must be a list or a comma list, got {raw_ids!r}")
    elif event.get('show_id') is not None:
        raw_ids = [event['show_id']]
    else:
        raw_ids = _split_ids(default)

    return [int(str(show_id).strip()) for show_id in raw_ids]


def _split_ids(value: str) -> List[str]:
    return [part for part in value.split(',') if part.strip()]


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for NFJS show synchronization.

    Each show is imported independently; a failed show is reported and the
    remaining shows are still imported.

    Args:
        event: EventBridge or manual invocation payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and per-show results
    """
    # Read configuration from environment variables
    table_name = os.environ.get('TABLE_NAME', 'nfjs-events')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    feed_base_url = os.environ.get('FEED_BASE_URL', NFJSFeedClient.DEFAULT_BASE_URL)
    source = os.environ.get('FEED_SOURCE', 'NFJS')
    member_group = int(os.environ.get('MEMBER_GROUP_ID', '1'))
    venue_created_by = int(os.environ.get('VENUE_CREATED_BY', '1'))

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()

    try:
        show_ids = parse_show_ids(event or {}, os.environ.get('SHOW_IDS', ''))
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid show ids: {e}")
        return {
            'statusCode': 400,
            'body': json.dumps({
                'message': 'Invalid show ids',
                'error': str(e)
            })
        }

    logger.info(
        "Lambda execution started",
        extra={
            'table_name': table_name,
            'show_ids': show_ids,
            'timeout_seconds': timeout_seconds
        }
    )

    if not show_ids:
        logger.warning("No show ids configured, nothing to import")
        return {
            'statusCode': 400,
            'body': json.dumps({'message': 'No show ids to import'})
        }

    client = NFJSFeedClient(base_url=feed_base_url, timeout=timeout_seconds)
    store = DynamoDBRecordStore(table_name=table_name)
    loader = FeedLoader(
        client,
        store,
        source=source,
        member_group=member_group,
        venue_created_by=venue_created_by
    )

    results = []
    errors = []
    for show_id in show_ids:
        try:
            result = loader.load_event_data(show_id)
            results.append(result.to_dict())
        except ShowImportError as e:
            logger.error(
                f"Import of show {show_id} failed: {e}",
                extra={
                    'show_id': show_id,
                    'entity_kind': e.entity_kind,
                    'error_type': type(e).__name__
                }
            )
            errors.append({
                'show_id': show_id,
                'entity_kind': e.entity_kind,
                'error_type': type(e).__name__,
                'error': e.message
            })
        except Exception as e:
            # Anything outside the import error hierarchy
            logger.error(
                f"Import of show {show_id} failed: {str(e)}",
                extra={'show_id': show_id, 'error_type': type(e).__name__},
                exc_info=True
            )
            errors.append({
                'show_id': show_id,
                'entity_kind': None,
                'error_type': type(e).__name__,
                'error': str(e)
            })

    duration = time.time() - start_time

    logger.info(
        "Lambda execution completed",
        extra={
            'duration_seconds': round(duration, 2),
            'shows_loaded': len(results),
            'shows_failed': len(errors)
        }
    )

    return {
        'statusCode': 500 if errors else 200,
        'body': json.dumps({
            'message': 'Sync failed for some shows' if errors else 'Sync completed successfully',
            'results': results,
            'errors': errors,
            'duration_seconds': round(duration, 2)
        })
    }
