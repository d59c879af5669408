from typing import Any, Dict, List, Optional, Tuple

from dynamo_crud.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, OperationClass
from dynamo_crud.data._base import QueryInputTypeDef
from dynamo_crud.data.base_operations import (
    ConnectionSnapshot,
    DynamoDBBaseOperations,
)
from dynamo_crud.data.shared_exceptions import EntityValidationError
from dynamo_crud.entities.query_expression import QueryExpression
from dynamo_crud.utils.dynamo_helpers import (
    build_projection_expression,
    merge_projection,
)
from dynamo_crud.utils.pagination import decode_cursor, encode_cursor


def clamp_page_size(page_size: Optional[int]) -> int:
    if page_size is None:
        return DEFAULT_PAGE_SIZE
    if isinstance(page_size, bool) or not isinstance(page_size, int):
        raise EntityValidationError("page_size must be an integer")
    return max(1, min(page_size, MAX_PAGE_SIZE))


class _Query(DynamoDBBaseOperations):
    """
    A class used to query records by key condition.

    Methods
    -------
    query(expression, ...)
        Returns every matching item, walking all pages.
    query_by_page(expression, page_size, cursor, ...)
        Returns one page and the cursor of the next.
    query_pagination_data(expression, page_size)
        Returns the start cursor of every page.
    """

    def query(
        self,
        expression: QueryExpression,
        projection: Optional[List[str]] = None,
        consistent_read: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run a query to completion.

        Args:
            expression: Key condition and optional filter.
            projection: Attributes to return; audit attributes are always
                added.
            consistent_read: Use strongly consistent reads.
            limit: Stop once this many items were collected.

        Returns:
            list[dict]: Matching items in key order.
        """
        if limit is not None and limit <= 0:
            raise EntityValidationError("limit must be positive")

        snapshot = self._snapshot()
        items: List[Dict[str, Any]] = []
        start_key = None
        while True:
            page, start_key = self._query_page(
                snapshot,
                expression,
                projection,
                consistent_read,
                page_size=None if limit is None else limit - len(items),
                start_key=start_key,
            )
            items.extend(page)
            if not start_key or (limit is not None and len(items) >= limit):
                return items

    def query_by_page(
        self,
        expression: QueryExpression,
        page_size: Optional[int] = DEFAULT_PAGE_SIZE,
        cursor: str = "",
        projection: Optional[List[str]] = None,
        consistent_read: bool = False,
    ) -> Tuple[List[Dict[str, Any]], str]:
        """
        Return one page of results.

        Args:
            expression: Key condition and optional filter.
            page_size: Items per page, clamped to [1, 250].
            cursor: Cursor returned by an earlier call, ``""`` for page one.
            projection: Attributes to return; audit attributes are always
                added.
            consistent_read: Use strongly consistent reads.

        Returns:
            tuple[list[dict], str]: The page and the next cursor, which is
            ``""`` after the last page.

        Raises:
            CursorError: If the cursor cannot be decoded.
        """
        start_key = decode_cursor(cursor)
        snapshot = self._snapshot()
        items, last_key = self._query_page(
            snapshot,
            expression,
            projection,
            consistent_read,
            page_size=clamp_page_size(page_size),
            start_key=start_key,
        )
        return items, encode_cursor(last_key)

    def query_pagination_data(
        self,
        expression: QueryExpression,
        page_size: Optional[int] = DEFAULT_PAGE_SIZE,
    ) -> List[str]:
        """
        Walk every page with a key-only projection and collect the cursors.

        Returns:
            list[str]: The cursor to pass to ``query_by_page`` for each page
            in order. The first entry is always ``""``.
        """
        page_size = clamp_page_size(page_size)
        snapshot = self._snapshot()
        cursors = [""]
        start_key = None
        while True:
            items, start_key = self._query_page(
                snapshot,
                expression,
                expression.key_attribute_names,
                False,
                page_size=page_size,
                start_key=start_key,
                audit=False,
            )
            if not items and len(cursors) > 1:
                # DynamoDB hands out a key after an exactly full last page.
                cursors.pop()
            if not start_key:
                return cursors
            cursors.append(encode_cursor(start_key))

    def _query_page(
        self,
        snapshot: ConnectionSnapshot,
        expression: QueryExpression,
        projection: Optional[List[str]],
        consistent_read: bool,
        page_size: Optional[int],
        start_key: Optional[Dict[str, Any]],
        audit: bool = True,
    ) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        if not isinstance(expression, QueryExpression):
            raise EntityValidationError(
                "expression must be a QueryExpression, "
                f"got {type(expression).__name__}"
            )

        request: QueryInputTypeDef = {
            "TableName": snapshot.table_name,
            **expression.build(),
        }
        if consistent_read:
            request["ConsistentRead"] = True
        if page_size:
            request["Limit"] = page_size
        if start_key:
            request["ExclusiveStartKey"] = start_key

        attributes = merge_projection(projection) if audit else projection
        if attributes:
            projection_expression, names = build_projection_expression(
                attributes
            )
            clashes = set(request["ExpressionAttributeNames"]) & set(names)
            if clashes:
                raise EntityValidationError(
                    "Filter placeholders collide with projection "
                    f"placeholders: {sorted(clashes)}"
                )
            request["ProjectionExpression"] = projection_expression
            request["ExpressionAttributeNames"] = {
                **request["ExpressionAttributeNames"],
                **names,
            }

        response = self._call(
            snapshot,
            "query",
            OperationClass.READ,
            lambda client: client.query(**request),
        )
        if response is None:
            return [], None
        return response.get("Items", []), response.get("LastEvaluatedKey")
