"""DynamoDB record store for synchronized show entities."""
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from sync.errors import Conflict, DuplicateMapping

logger = logging.getLogger(__name__)

LocalKey = Union[int, Tuple[int, ...]]


def encode_key(key: LocalKey) -> str:
    """Encode a local key as a sort key string ('7' or '1#12')."""
    if isinstance(key, tuple):
        return '#'.join(str(part) for part in key)
    return str(key)


def decode_key(value: str) -> LocalKey:
    """Inverse of encode_key."""
    parts = str(value).split('#')
    if len(parts) == 1:
        return int(parts[0])
    return tuple(int(part) for part in parts)


class DynamoDBRecordStore:
    """
    Key-addressable record store on a single DynamoDB table.

    The table has a string hash key ``pk`` and a string range key ``sk``:

    - entity rows:        pk=<kind>            sk=<local key>
    - id counters:        pk=counter           sk=<kind>[#<scope>]
    - external refs:      pk=ref#<kind>        sk=<source>#<upstream id>
    - reverse refs:       pk=refby#<kind>      sk=<source>#<local key>
    - association rows:   pk=<association>     sk=<joined keys>
    """

    COUNTER_PK = 'counter'

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize DynamoDB resource and table reference.

        Args:
            table_name: Name of the DynamoDB table
            region_name: Optional AWS region, defaults to the environment
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        # Resource client: takes plain Python values, including in TransactItems
        self.client = self.dynamodb.meta.client
        logger.info(f"Initialized DynamoDBRecordStore for table: {table_name}")

    def next_id(self, kind: str, scope: Optional[int] = None) -> int:
        """
        Allocate the next auto-increment id for an entity kind.

        Args:
            kind: Entity kind
            scope: Optional parent id; ids are then counted per parent

        Returns:
            1 for the first allocation, increasing by one afterwards
        """
        counter = kind if scope is None else f"{kind}#{scope}"
        response = self.table.update_item(
            Key={'pk': self.COUNTER_PK, 'sk': counter},
            UpdateExpression='ADD next_id :one',
            ExpressionAttributeValues={':one': 1},
            ReturnValues='UPDATED_NEW'
        )
        return int(response['Attributes']['next_id'])

    def insert(
        self,
        kind: str,
        fields: Dict[str, Any],
        scope: Optional[int] = None,
        reference: Optional[Tuple[str, int]] = None
    ) -> LocalKey:
        """
        Insert a new entity row, optionally binding an external reference.

        The row and its reference items are written in one transaction, so
        either all of them exist afterwards or none does.

        Args:
            kind: Entity kind
            fields: Column values of the new row
            scope: Parent id for kinds keyed by (parent id, sequence)
            reference: Optional (source, upstream id) to bind to the new row

        Returns:
            The local key of the new row

        Raises:
            Conflict: If the row or one of the reference items already exists
        """
        sequence = self.next_id(kind, scope)
        key = sequence if scope is None else (scope, sequence)
        local_key = encode_key(key)

        item = dict(fields)
        item.update({'pk': kind, 'sk': local_key, 'id': sequence})
        operations = [self._put(item, 'attribute_not_exists(pk)')]

        if reference is not None:
            source, upstream_id = reference
            operations.extend(self._reference_puts(kind, source, upstream_id, local_key))

        try:
            self.client.transact_write_items(TransactItems=operations)
        except ClientError as e:
            if self._is_condition_failure(e):
                raise Conflict(
                    f"Insert of {kind} {local_key} lost a uniqueness check "
                    f"(reference {reference})",
                    entity_kind=kind
                ) from e
            logger.error(f"Error inserting {kind} {local_key}: {e}")
            raise

        logger.debug(f"Inserted {kind} {local_key}")
        return key

    def update(self, kind: str, key: LocalKey, fields: Dict[str, Any]) -> None:
        """
        Overwrite the given columns of an existing row.

        Raises:
            Conflict: If the row does not exist
        """
        if not fields:
            return

        names = {}
        values = {}
        assignments = []
        for index, (column, value) in enumerate(fields.items()):
            names[f'#f{index}'] = column
            values[f':v{index}'] = self._to_dynamo(value)
            assignments.append(f'#f{index} = :v{index}')

        try:
            self.table.update_item(
                Key={'pk': kind, 'sk': encode_key(key)},
                UpdateExpression='SET ' + ', '.join(assignments),
                ConditionExpression='attribute_exists(pk)',
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values
            )
        except ClientError as e:
            if self._is_condition_failure(e):
                raise Conflict(
                    f"{kind} {encode_key(key)} is referenced but does not exist",
                    entity_kind=kind
                ) from e
            logger.error(f"Error updating {kind} {encode_key(key)}: {e}")
            raise

        logger.debug(f"Updated {kind} {encode_key(key)}")

    def get(self, kind: str, key: LocalKey) -> Optional[Dict[str, Any]]:
        """Return one row as a plain dict, or None if absent."""
        response = self.table.get_item(
            Key={'pk': kind, 'sk': encode_key(key)},
            ConsistentRead=True
        )
        item = response.get('Item')
        return self._to_row(item) if item else None

    def query(
        self,
        kind: str,
        predicate: Optional[Callable[[Dict[str, Any]], bool]] = None
    ) -> List[Dict[str, Any]]:
        """
        Return all rows of a kind, optionally filtered by a predicate.

        Args:
            kind: Entity or association kind
            predicate: Callable receiving a row and returning True to keep it

        Returns:
            List of rows as plain dicts
        """
        rows = []
        for item in self._query_items(kind):
            row = self._to_row(item)
            if predicate is None or predicate(row):
                rows.append(row)
        return rows

    def count(self, kind: str) -> int:
        """Count rows of a kind."""
        total = 0
        kwargs = {
            'KeyConditionExpression': Key('pk').eq(kind),
            'Select': 'COUNT',
            'ConsistentRead': True
        }
        while True:
            response = self.table.query(**kwargs)
            total += response['Count']
            if 'LastEvaluatedKey' not in response:
                return total
            kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']

    def find_reference(self, kind: str, source: str, upstream_id: int) -> Optional[LocalKey]:
        """Return the local key bound to (source, upstream id), or None."""
        response = self.table.get_item(
            Key={'pk': f'ref#{kind}', 'sk': f'{source}#{upstream_id}'},
            ConsistentRead=True
        )
        item = response.get('Item')
        if not item:
            return None
        return decode_key(item['local_id'])

    def put_reference(self, kind: str, source: str, upstream_id: int, key: LocalKey) -> None:
        """
        Bind (source, upstream id) to a local key.

        Writing a binding that already exists with the same local key is
        accepted and changes nothing.

        Raises:
            DuplicateMapping: If the upstream id is bound to another local key,
                or the local key is bound to another upstream id of the source
        """
        local_key = encode_key(key)
        operations = self._reference_puts(kind, source, upstream_id, local_key, allow_same=True)
        try:
            self.client.transact_write_items(TransactItems=operations)
        except ClientError as e:
            if self._is_condition_failure(e):
                raise DuplicateMapping(
                    f"{source} {kind} {upstream_id} cannot be bound to {local_key}: "
                    f"an existing mapping differs",
                    entity_kind=kind
                ) from e
            logger.error(f"Error binding {source} {kind} {upstream_id}: {e}")
            raise

    def link(self, association: str, keys: Tuple[int, ...], fields: Optional[Dict[str, Any]] = None) -> bool:
        """
        Insert an association row if absent. Existing rows are left alone.

        Returns:
            True if a new row was written
        """
        item = dict(fields or {})
        item.update({'pk': association, 'sk': encode_key(tuple(keys))})
        try:
            self.table.put_item(
                Item={k: self._to_dynamo(v) for k, v in item.items()},
                ConditionExpression='attribute_not_exists(pk)'
            )
        except ClientError as e:
            if self._is_condition_failure(e):
                return False
            logger.error(f"Error linking {association} {keys}: {e}")
            raise
        return True

    def _reference_puts(
        self,
        kind: str,
        source: str,
        upstream_id: int,
        local_key: str,
        allow_same: bool = False
    ) -> List[Dict[str, Any]]:
        forward = {
            'pk': f'ref#{kind}',
            'sk': f'{source}#{upstream_id}',
            'source': source,
            'source_id': upstream_id,
            'local_id': local_key
        }
        reverse = {
            'pk': f'refby#{kind}',
            'sk': f'{source}#{local_key}',
            'source': source,
            'source_id': upstream_id,
            'local_id': local_key
        }
        if not allow_same:
            return [
                self._put(forward, 'attribute_not_exists(pk)'),
                self._put(reverse, 'attribute_not_exists(pk)')
            ]
        return [
            self._put(
                forward,
                'attribute_not_exists(pk) OR local_id = :local',
                {':local': local_key}
            ),
            self._put(
                reverse,
                'attribute_not_exists(pk) OR source_id = :sid',
                {':sid': upstream_id}
            )
        ]

    def _put(
        self,
        item: Dict[str, Any],
        condition: str,
        values: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        put = {
            'TableName': self.table_name,
            'Item': self._to_dynamo(item),
            'ConditionExpression': condition
        }
        if values:
            put['ExpressionAttributeValues'] = self._to_dynamo(values)
        return {'Put': put}

    def _query_items(self, pk: str) -> List[Dict[str, Any]]:
        items = []
        kwargs = {'KeyConditionExpression': Key('pk').eq(pk), 'ConsistentRead': True}
        while True:
            response = self.table.query(**kwargs)
            items.extend(response.get('Items', []))
            if 'LastEvaluatedKey' not in response:
                return items
            kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']

    def _to_dynamo(self, value: Any) -> Any:
        """DynamoDB rejects floats; store them as Decimal."""
        if isinstance(value, float):
            return Decimal(str(value))
        if isinstance(value, (list, tuple)):
            return [self._to_dynamo(v) for v in value]
        if isinstance(value, dict):
            return {k: self._to_dynamo(v) for k, v in value.items()}
        return value

    def _to_row(self, item: Dict[str, Any]) -> Dict[str, Any]:
        row = {}
        for column, value in item.items():
            if column in ('pk', 'sk'):
                continue
            row[column] = self._from_dynamo(value)
        return row

    def _from_dynamo(self, value: Any) -> Any:
        if isinstance(value, Decimal):
            return int(value) if value == value.to_integral_value() else float(value)
        if isinstance(value, list):
            return [self._from_dynamo(v) for v in value]
        return value

    def _is_condition_failure(self, error: ClientError) -> bool:
        code = error.response.get('Error', {}).get('Code')
        if code == 'ConditionalCheckFailedException':
            return True
        if code == 'TransactionCanceledException':
            reasons = error.response.get('CancellationReasons') or []
            if any(r.get('Code') == 'ConditionalCheckFailed' for r in reasons):
                return True
            return 'ConditionalCheckFailed' in str(error)
        return False
