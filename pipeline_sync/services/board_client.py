"""
monday.com board client.

GraphQL client for the pipeline board. Logical columns are mapped to the
board's concrete column ids; logical columns without an id are dropped.
Writes are never retried, since a repeated create would duplicate items.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import httpx

from pipeline_sync.models.board import (
    DEFAULT_COLUMN_IDS,
    STATUS_COLUMNS,
    BoardItem,
    Column,
    ColumnValues,
)
from pipeline_sync.services.errors import BoardClientError
from pipeline_sync.utils.logging import get_logger
from pipeline_sync.utils.metrics import track_api_call

logger = get_logger(__name__)


ITEM_FIELDS = "cursor items { id name column_values { id text } }"

ITEMS_PAGE_QUERY = f"""
query ($boardId: [ID!], $limit: Int!) {{
  boards(ids: $boardId) {{
    items_page(limit: $limit) {{ {ITEM_FIELDS} }}
  }}
}}
"""

NEXT_ITEMS_PAGE_QUERY = f"""
query ($cursor: String!, $limit: Int!) {{
  next_items_page(cursor: $cursor, limit: $limit) {{ {ITEM_FIELDS} }}
}}
"""

CREATE_ITEM_MUTATION = """
mutation ($boardId: ID!, $itemName: String!, $columnValues: JSON!) {
  create_item(board_id: $boardId, item_name: $itemName,
              column_values: $columnValues, create_labels_if_missing: true) { id }
}
"""

UPDATE_ITEM_MUTATION = """
mutation ($boardId: ID!, $itemId: ID!, $columnValues: JSON!) {
  change_multiple_column_values(board_id: $boardId, item_id: $itemId,
                                column_values: $columnValues, create_labels_if_missing: true) { id }
}
"""

CREATE_UPDATE_MUTATION = """
mutation ($itemId: ID!, $body: String!) {
  create_update(item_id: $itemId, body: $body) { id }
}
"""


def resolve_column_ids(overrides: Optional[Mapping[str, str]] = None) -> Dict[Column, str]:
    """
    Merge configured column id overrides onto the default board layout.

    Args:
        overrides: Logical column name -> board column id

    Returns:
        Mapping of logical column to board column id
    """
    column_ids = dict(DEFAULT_COLUMN_IDS)
    for key, column_id in (overrides or {}).items():
        try:
            column_ids[Column(key)] = column_id
        except ValueError:
            logger.warning(f"Ignoring column id override for unknown column: {key}")
    return column_ids


def _plain(value: object) -> str:
    if isinstance(value, Enum):
        value = value.value
    return str(value)


class MondayBoardClient:
    """Client for the monday.com GraphQL API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        column_ids: Optional[Mapping[Column, str]] = None,
        page_size: int = 500,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the board client.

        Args:
            api_url: GraphQL endpoint
            api_key: API token
            column_ids: Logical column -> board column id (defaults to the reference board)
            page_size: items_page page size
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self._column_ids: Dict[Column, str] = dict(column_ids or DEFAULT_COLUMN_IDS)
        self._columns_by_id = {column_id: column for column, column_id in self._column_ids.items()}
        self._page_size = page_size
        self._client = httpx.AsyncClient(
            headers={"Authorization": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        self._api_url = api_url

    async def close(self) -> None:
        await self._client.aclose()

    async def _execute(self, query: str, variables: Dict[str, Any], operation: str) -> Dict[str, Any]:
        """
        Run a GraphQL operation.

        Returns:
            The 'data' member of the response

        Raises:
            BoardClientError: On HTTP failure or GraphQL errors
        """
        try:
            async with track_api_call("monday", operation, "POST", logger):
                response = await self._client.post(
                    self._api_url,
                    json={"query": query, "variables": variables},
                )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise BoardClientError(
                f"Board API returned {e.response.status_code} for {operation}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise BoardClientError(f"Board API request failed for {operation}: {e}") from e
        except ValueError as e:
            raise BoardClientError(f"Board API returned invalid JSON for {operation}") from e

        errors = body.get("errors")
        if errors:
            messages = ", ".join(str(error.get("message", error)) for error in errors)
            raise BoardClientError(f"Board API errors in {operation}: {messages}")
        if body.get("error_message"):
            raise BoardClientError(f"Board API error in {operation}: {body['error_message']}")

        data = body.get("data")
        if not isinstance(data, dict):
            raise BoardClientError(f"Board API returned no data for {operation}")
        return data

    def serialize_columns(self, columns: ColumnValues) -> Dict[str, Any]:
        """
        Render logical column values in the board's JSON format.

        Status columns become {"label": ...}; all other columns plain text.
        Columns without a configured board id are dropped.
        """
        rendered: Dict[str, Any] = {}
        for column, value in columns.items():
            column_id = self._column_ids.get(column)
            if not column_id:
                logger.warning(
                    f"No board column configured for {column.value}; dropping value",
                    extra={"column": column.value}
                )
                continue
            text = _plain(value)
            if column in STATUS_COLUMNS:
                rendered[column_id] = {"label": text}
            else:
                rendered[column_id] = text.replace("\r", "").replace("\n", " ")
        return rendered

    def _parse_item(self, raw: Dict[str, Any]) -> BoardItem:
        columns: Dict[Column, str] = {}
        for value in raw.get("column_values") or []:
            column = self._columns_by_id.get(value.get("id"))
            if column is not None and value.get("text"):
                columns[column] = value["text"]
        return BoardItem(id=str(raw["id"]), name=raw.get("name") or "", columns=columns)

    async def query_items(self, board_id: str) -> List[BoardItem]:
        """
        Fetch every item on the board, following items_page cursors.

        Raises:
            BoardClientError: If the board is missing or a page fails
        """
        data = await self._execute(
            ITEMS_PAGE_QUERY,
            {"boardId": [board_id], "limit": self._page_size},
            "items_page",
        )
        boards = data.get("boards") or []
        if not boards:
            raise BoardClientError(f"Board {board_id} not found")

        page = boards[0].get("items_page") or {}
        items = [self._parse_item(raw) for raw in page.get("items") or []]
        cursor = page.get("cursor")

        while cursor:
            data = await self._execute(
                NEXT_ITEMS_PAGE_QUERY,
                {"cursor": cursor, "limit": self._page_size},
                "next_items_page",
            )
            page = data.get("next_items_page") or {}
            items.extend(self._parse_item(raw) for raw in page.get("items") or [])
            cursor = page.get("cursor")

        logger.debug(f"Fetched {len(items)} items from board {board_id}")
        return items

    async def create_item(self, board_id: str, name: str, columns: ColumnValues) -> str:
        """
        Create an item.

        Returns:
            New item id
        """
        data = await self._execute(
            CREATE_ITEM_MUTATION,
            {
                "boardId": board_id,
                "itemName": name,
                "columnValues": json.dumps(self.serialize_columns(columns)),
            },
            "create_item",
        )
        created = data.get("create_item") or {}
        if "id" not in created:
            raise BoardClientError("create_item returned no item id")
        return str(created["id"])

    async def update_item(self, board_id: str, item_id: str, columns: ColumnValues) -> None:
        await self._execute(
            UPDATE_ITEM_MUTATION,
            {
                "boardId": board_id,
                "itemId": item_id,
                "columnValues": json.dumps(self.serialize_columns(columns)),
            },
            "change_multiple_column_values",
        )

    async def create_comment(self, item_id: str, body: str) -> None:
        await self._execute(
            CREATE_UPDATE_MUTATION,
            {"itemId": item_id, "body": body},
            "create_update",
        )
