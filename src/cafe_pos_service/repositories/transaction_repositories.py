"""DynamoDB repository classes for draft carts and completed transactions.

Draft carts are keyed by user_id, so the table itself guarantees one draft per
user. Every draft write is conditional on the version that was read; a failed
condition raises ConcurrentModificationError so the caller can re-read and retry.
All other DynamoDB failures are logged and reported as None/False/[].
"""

import logging
from datetime import datetime
from typing import Any

from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from cafe_pos_service.errors import ConcurrentModificationError
from cafe_pos_service.models.transaction_models import Transaction, TransactionStatus

logger = logging.getLogger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
TRANSACTION_CANCELED = "TransactionCanceledException"


def _is_conditional_failure(error: ClientError) -> bool:
    """Check whether a ClientError came from a failed ConditionExpression."""
    code = error.response.get("Error", {}).get("Code")
    if code == CONDITIONAL_CHECK_FAILED:
        return True
    if code == TRANSACTION_CANCELED:
        reasons = error.response.get("CancellationReasons", [])
        return any(reason.get("Code") == "ConditionalCheckFailed" for reason in reasons)
    return False


class DraftCartRepository:
    """Repository for draft carts.

    Manages draft Transaction records in DynamoDB with user_id as partition key.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get_draft(self, user_id: str) -> Transaction | None:
        """Retrieve the draft cart for a user.

        Args:
            user_id: Owning user

        Returns:
            Transaction if a draft exists, None otherwise
        """
        try:
            response = self.table.get_item(Key={"user_id": user_id}, ConsistentRead=True)

            if "Item" not in response:
                return None

            return Transaction.from_dynamodb_item(response["Item"])

        except ClientError as e:
            logger.error(f"Failed to get draft cart for user {user_id}: {e}")  # pragma: no cover
            return None

    def create_draft(self, draft: Transaction) -> bool:
        """Insert a new draft, failing if the user already has one.

        Args:
            draft: Draft transaction to insert

        Returns:
            bool: True if insert succeeded, False otherwise

        Raises:
            ConcurrentModificationError: If a draft already exists for the user
        """
        try:
            self.table.put_item(
                Item=draft.to_dynamodb_item(),
                ConditionExpression="attribute_not_exists(user_id)",
            )
            return True

        except ClientError as e:
            if _is_conditional_failure(e):
                raise ConcurrentModificationError(
                    f"Draft cart for user {draft.user_id} was created concurrently"
                ) from e
            logger.error(f"Failed to create draft cart for user {draft.user_id}: {e}")  # pragma: no cover
            return False

    def save_draft(self, draft: Transaction, expected_version: int) -> bool:
        """Replace a draft if it is still at `expected_version`.

        The caller is responsible for bumping draft.version.

        Args:
            draft: Updated draft transaction
            expected_version: Version read before the update

        Returns:
            bool: True if save succeeded, False otherwise

        Raises:
            ConcurrentModificationError: If the stored version differs
        """
        try:
            self.table.put_item(
                Item=draft.to_dynamodb_item(),
                ConditionExpression="version = :expected_version",
                ExpressionAttributeValues={":expected_version": expected_version},
            )
            return True

        except ClientError as e:
            if _is_conditional_failure(e):
                raise ConcurrentModificationError(
                    f"Draft cart for user {draft.user_id} changed since version {expected_version}"
                ) from e
            logger.error(f"Failed to save draft cart for user {draft.user_id}: {e}")  # pragma: no cover
            return False

    def delete_draft(self, user_id: str, expected_version: int | None = None) -> bool:
        """Delete a user's draft.

        Args:
            user_id: Owning user
            expected_version: Only delete if the stored version matches (None deletes unconditionally)

        Returns:
            bool: True if delete succeeded, False otherwise

        Raises:
            ConcurrentModificationError: If the stored version differs
        """
        kwargs: dict[str, Any] = {"Key": {"user_id": user_id}}
        if expected_version is not None:
            kwargs["ConditionExpression"] = "version = :expected_version"
            kwargs["ExpressionAttributeValues"] = {":expected_version": expected_version}

        try:
            self.table.delete_item(**kwargs)
            return True

        except ClientError as e:
            if _is_conditional_failure(e):
                raise ConcurrentModificationError(
                    f"Draft cart for user {user_id} changed since version {expected_version}"
                ) from e
            logger.error(f"Failed to delete draft cart for user {user_id}: {e}")  # pragma: no cover
            return False


class TransactionRepository:
    """Repository for completed transactions.

    Manages transaction records in DynamoDB with transaction_id as partition key.
    Uses a Global Secondary Index on (status, completed_at) for history queries.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)
        self._serializer = TypeSerializer()

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        """Retrieve a transaction by ID.

        Args:
            transaction_id: Transaction identifier

        Returns:
            Transaction if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"transaction_id": transaction_id})

            if "Item" not in response:
                return None

            return Transaction.from_dynamodb_item(response["Item"])

        except ClientError as e:
            logger.error(f"Failed to get transaction {transaction_id}: {e}")  # pragma: no cover
            return None

    def list_completed(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[Transaction]:
        """List completed transactions, most recent first.

        Args:
            start: Inclusive lower bound on completed_at
            end: Inclusive upper bound on completed_at
            limit: Maximum number of transactions to return (None returns all)

        Returns:
            list: List of Transaction objects (empty list if none found)
        """
        key_condition = "#status = :status"
        values: dict[str, Any] = {":status": TransactionStatus.COMPLETED.value}

        if start is not None and end is not None:
            key_condition += " AND completed_at BETWEEN :start AND :end"
            values[":start"] = start.isoformat()
            values[":end"] = end.isoformat()
        elif start is not None:
            key_condition += " AND completed_at >= :start"
            values[":start"] = start.isoformat()
        elif end is not None:
            key_condition += " AND completed_at <= :end"
            values[":end"] = end.isoformat()

        query_kwargs: dict[str, Any] = {
            "IndexName": "status-completed_at-index",
            "KeyConditionExpression": key_condition,
            "ExpressionAttributeNames": {"#status": "status"},
            "ExpressionAttributeValues": values,
            "ScanIndexForward": False,  # Most recent first
        }
        if limit is not None:
            query_kwargs["Limit"] = limit

        try:
            items: list[dict[str, Any]] = []
            response = self.table.query(**query_kwargs)
            items.extend(response.get("Items", []))

            while "LastEvaluatedKey" in response and (limit is None or len(items) < limit):
                response = self.table.query(
                    ExclusiveStartKey=response["LastEvaluatedKey"], **query_kwargs
                )
                items.extend(response.get("Items", []))

            if limit is not None:
                items = items[:limit]

            return [Transaction.from_dynamodb_item(item) for item in items]

        except ClientError as e:
            logger.error(f"Failed to list completed transactions: {e}")  # pragma: no cover
            return []

    def complete_checkout(
        self,
        transaction: Transaction,
        draft_table_name: str,
        expected_draft_version: int,
    ) -> bool:
        """Atomically write a completed transaction and delete its draft.

        Args:
            transaction: The transaction in COMPLETED status
            draft_table_name: Table holding the user's draft
            expected_draft_version: Version of the draft that was read

        Returns:
            bool: True if the write succeeded, False otherwise

        Raises:
            ConcurrentModificationError: If the draft changed or the id is already taken
        """
        item = {k: self._serializer.serialize(v) for k, v in transaction.to_dynamodb_item().items()}

        try:
            self.dynamodb.meta.client.transact_write_items(
                TransactItems=[
                    {
                        "Delete": {
                            "TableName": draft_table_name,
                            "Key": {"user_id": {"S": transaction.user_id}},
                            "ConditionExpression": "version = :expected_version",
                            "ExpressionAttributeValues": {
                                ":expected_version": {"N": str(expected_draft_version)}
                            },
                        }
                    },
                    {
                        "Put": {
                            "TableName": self.table_name,
                            "Item": item,
                            "ConditionExpression": "attribute_not_exists(transaction_id)",
                        }
                    },
                ]
            )
            return True

        except ClientError as e:
            if _is_conditional_failure(e):
                raise ConcurrentModificationError(
                    f"Draft cart for user {transaction.user_id} changed during checkout"
                ) from e
            logger.error(f"Failed to complete checkout {transaction.transaction_id}: {e}")  # pragma: no cover
            return False
