"""
Board Reconciler component.

Idempotent find-or-create/update of board items keyed by tracking
identity. The board has no transactions, so the find and the create run
under a per-identity lock.
"""

import re
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Protocol

from pipeline_sync.models.board import (
    BoardItem,
    Column,
    ColumnValues,
    ReconcileOutcome,
    ReconcileResult,
)
from pipeline_sync.models.events import NO_COMMIT_MESSAGE, PipelineEvent, TrackingIdentity
from pipeline_sync.services.errors import BoardClientError
from pipeline_sync.services.locks import IdentityLockError, IdentityLockManager
from pipeline_sync.utils.logging import get_logger

logger = get_logger(__name__)


_PR_NAME = re.compile(r"PR-(\d+)")


class ReconciliationFailure(Exception):
    """Raised when the board cannot be read or written during an upsert."""
    pass


class BoardClient(Protocol):
    """Board operations the reconciler depends on."""

    async def query_items(self, board_id: str) -> list[BoardItem]: ...

    async def create_item(self, board_id: str, name: str, columns: ColumnValues) -> str: ...

    async def update_item(self, board_id: str, item_id: str, columns: ColumnValues) -> None: ...

    async def create_comment(self, item_id: str, body: str) -> None: ...


def should_skip(event: PipelineEvent) -> bool:
    """Events with neither a commit id nor a real commit message carry no data."""
    return not event.commit_id and event.commit_message == NO_COMMIT_MESSAGE


def is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def sanitize_item_name(name: str, max_length: int) -> str:
    """Replace line breaks and truncate to the board's item name limit."""
    cleaned = re.sub(r"[\r\n]+", " ", name).strip()
    return cleaned[:max_length]


def find_item(items: Iterable[BoardItem], name: str) -> Optional[BoardItem]:
    """
    Find the item for a name.

    An exact name match wins. A PR-<n> name also matches an item whose
    name mentions PR-<n> or #<n>.
    """
    items = list(items)
    for item in items:
        if item.name == name:
            return item

    match = _PR_NAME.fullmatch(name)
    if match:
        reference = re.compile(rf"(?:PR-|#){match.group(1)}(?!\d)")
        for item in items:
            if reference.search(item.name):
                return item
    return None


def today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class BoardReconciler:
    """Upserts column values onto the board item of a tracking identity."""

    def __init__(
        self,
        board: BoardClient,
        board_id: str,
        locks: IdentityLockManager,
        item_name_max_length: int = 200,
        clock: Callable[[], str] = today
    ):
        """
        Initialize the reconciler.

        Args:
            board: Board client
            board_id: Board holding the pipeline items
            locks: Per-identity lock manager
            item_name_max_length: Item name truncation limit
            clock: Returns the last-updated stamp (YYYY-MM-DD)
        """
        self._board = board
        self._board_id = board_id
        self._locks = locks
        self._max_length = item_name_max_length
        self._clock = clock

    async def _find(self, identity: TrackingIdentity) -> Optional[BoardItem]:
        items = await self._board.query_items(self._board_id)
        for name in identity.lookup_names():
            item = find_item(items, sanitize_item_name(name, self._max_length))
            if item is not None:
                return item
        return None

    async def upsert(
        self,
        identity: TrackingIdentity,
        column_values: ColumnValues,
        event: Optional[PipelineEvent] = None
    ) -> ReconcileResult:
        """
        Merge column values into the identity's board item, creating it if needed.

        Args:
            identity: Tracking identity
            column_values: Columns to write; empty values are dropped
            event: Source event, when the update comes from a webhook

        Returns:
            ReconcileResult with outcome created, updated or skipped

        Raises:
            ReconciliationFailure: If the board cannot be read or written
        """
        if event is not None and should_skip(event):
            logger.info(
                f"Skipping event without commit data for {identity.canonical_name}",
                extra={"tracking_name": identity.canonical_name}
            )
            return ReconcileResult(outcome=ReconcileOutcome.SKIPPED)

        values: ColumnValues = {
            column: value for column, value in column_values.items()
            if not is_empty(value)
        }
        values[Column.LAST_UPDATED] = self._clock()

        try:
            async with self._locks.hold(identity.canonical_name):
                item = await self._find(identity)

                if item is not None:
                    await self._board.update_item(self._board_id, item.id, values)
                    logger.info(
                        f"Updated board item {item.name}",
                        extra={
                            "tracking_name": identity.canonical_name,
                            "item_id": item.id,
                            "columns": [c.value for c in values],
                        }
                    )
                    return ReconcileResult(
                        outcome=ReconcileOutcome.UPDATED,
                        item_id=item.id,
                        item_name=item.name,
                    )

                name = sanitize_item_name(identity.canonical_name, self._max_length)
                item_id = await self._board.create_item(self._board_id, name, values)
                logger.info(
                    f"Created board item {name}",
                    extra={"tracking_name": identity.canonical_name, "item_id": item_id}
                )
                return ReconcileResult(
                    outcome=ReconcileOutcome.CREATED,
                    item_id=item_id,
                    item_name=name,
                )

        except (BoardClientError, IdentityLockError) as e:
            raise ReconciliationFailure(
                f"Failed to reconcile {identity.canonical_name}: {e}"
            ) from e

    async def comment(self, identity: TrackingIdentity, body: str) -> bool:
        """
        Post a comment on the identity's board item.

        Args:
            identity: Tracking identity
            body: Comment text

        Returns:
            True if posted, False if the identity has no item

        Raises:
            ReconciliationFailure: If the board cannot be read or written
        """
        try:
            item = await self._find(identity)
            if item is None:
                logger.warning(
                    f"No board item to comment on for {identity.canonical_name}",
                    extra={"tracking_name": identity.canonical_name}
                )
                return False
            await self._board.create_comment(item.id, body)
            return True
        except BoardClientError as e:
            raise ReconciliationFailure(
                f"Failed to comment on {identity.canonical_name}: {e}"
            ) from e
