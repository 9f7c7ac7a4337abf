"""
JSON-seeded table store: the data-access layer every screen builds on.

This module stands in for the hosted backend's table API. Tables are seeded
from JSON fixture files and all writes happen in memory. Every successful
write is reported to the attached change feed, in commit order, the same way
the hosted backend reports row mutations to realtime subscribers.

Design decisions:
- Rows are plain dicts and are always copied on the way in and out
- Fixtures load lazily, one table at a time
- `select` strings follow the PostgREST shape, including embedded relations:
  "*, customers(id, name), order_items(id, products(id, name))"
- Relations are resolved by naming convention: orders.customer_id points at
  customers.id (many-to-one), order_items.order_id points back at orders.id
  (one-to-many)
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Optional
from uuid import uuid4

from backoffice.errors import UnknownTableError
from backoffice.models import ChangeEvent, Operation, Row

if TYPE_CHECKING:
    from realtime.change_feed import ChangeFeed

logger = logging.getLogger("table_store")


TABLES = (
    "products",
    "customers",
    "employees",
    "orders",
    "order_items",
    "finance",
    "contact_messages",
)


# =============================================================================
# Select parsing
# =============================================================================

@dataclass
class Selection:
    """Parsed `select` string: plain columns plus embedded relations."""
    star: bool = False
    columns: list[str] = field(default_factory=list)
    embeds: dict[str, "Selection"] = field(default_factory=dict)


def _split_top_level(text: str) -> list[str]:
    parts = []
    current = []
    depth = 0
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise ValueError(f"Unbalanced parentheses in select: {text!r}")
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    if depth != 0:
        raise ValueError(f"Unbalanced parentheses in select: {text!r}")
    parts.append("".join(current).strip())
    return [p for p in parts if p]


def parse_select(text: Optional[str]) -> Selection:
    """
    Parse a PostgREST-style select string.

    Examples:
        parse_select("*")
        parse_select("id, name")
        parse_select("*, customers(id, name), order_items(*, products(name))")
    """
    if text is None or not text.strip():
        return Selection(star=True)

    selection = Selection()
    for part in _split_top_level(text):
        if "(" in part:
            if not part.endswith(")"):
                raise ValueError(f"Malformed embedded relation: {part!r}")
            name = part[:part.index("(")].strip()
            inner = part[part.index("(") + 1:-1]
            if not name:
                raise ValueError(f"Embedded relation without a name: {part!r}")
            selection.embeds[name] = parse_select(inner)
        elif part == "*":
            selection.star = True
        else:
            selection.columns.append(part)
    return selection


def _singular(table: str) -> str:
    if table.endswith("ies"):
        return table[:-3] + "y"
    if table.endswith("s"):
        return table[:-1]
    return table


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Table store
# =============================================================================

class TableStore:
    """
    In-memory tables seeded from JSON fixtures.

    Example:
        store = TableStore(data_dir, change_feed=feed)
        orders = store.query("orders", select="*, customers(name)", order="created_at.desc")
        store.update("orders", "ord-001", {"status": "completed"})  # publishes UPDATE
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        change_feed: Optional["ChangeFeed"] = None,
        tables: Iterable[str] = TABLES,
    ):
        """
        Initialize the table store.

        Args:
            data_dir: Directory holding `<table>.json` fixture files.
                      Missing files mean the table starts empty.
            change_feed: Feed that receives one ChangeEvent per write.
            tables: Names of the tables this backend exposes.
        """
        if data_dir is None:
            data_dir = Path(__file__).parent.parent / "data"
        self.data_dir = Path(data_dir)
        self.change_feed = change_feed
        self.tables = tuple(tables)

        self._rows: dict[str, list[Row]] = {}

        if self.change_feed is not None:
            self.change_feed.register_tables(self.tables)

    # =========================================================================
    # Loading
    # =========================================================================

    def _load_json(self, table: str) -> list[Row]:
        filepath = self.data_dir / f"{table}.json"
        if not filepath.exists():
            return []
        with open(filepath, "r", encoding="utf-8") as f:
            return json.load(f)

    def _table(self, table: str) -> list[Row]:
        if table not in self.tables:
            raise UnknownTableError(table)
        if table not in self._rows:
            self._rows[table] = self._load_json(table)
        return self._rows[table]

    def has_table(self, table: str) -> bool:
        return table in self.tables

    def reload(self) -> None:
        """Drop all in-memory changes and re-read the fixtures lazily."""
        self._rows.clear()

    # =========================================================================
    # Reads
    # =========================================================================

    def query(
        self,
        table: str,
        select: Optional[str] = None,
        filters: Optional[dict[str, Any]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Row]:
        """
        Read rows from a table.

        Args:
            table: Table name
            select: PostgREST-style projection, embedded relations allowed
            filters: Column -> value equality filters, all must match
            order: "column" or "column.asc" / "column.desc"
            limit: Maximum number of rows to return

        Returns:
            Copies of the matching rows, projected per `select`
        """
        rows = self._table(table)
        selection = parse_select(select)

        if filters:
            rows = [
                r for r in rows
                if all(r.get(column) == value for column, value in filters.items())
            ]

        if order:
            column, _, direction = order.partition(".")
            descending = direction == "desc"
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            present = sorted(present, key=lambda r: r[column], reverse=descending)
            # nulls last in both directions
            rows = present + missing

        if limit is not None:
            rows = rows[:limit]

        return [self._project(table, row, selection) for row in rows]

    def get(self, table: str, row_id: Any) -> Optional[Row]:
        """Get one row by id, or None."""
        for row in self._table(table):
            if row.get("id") == row_id:
                return copy.deepcopy(row)
        return None

    def _project(self, table: str, row: Row, selection: Selection) -> Row:
        if selection.star or not (selection.columns or selection.embeds):
            result = copy.deepcopy(row)
        else:
            result = {column: copy.deepcopy(row.get(column)) for column in selection.columns}

        for name, inner in selection.embeds.items():
            result[name] = self._embed(table, row, name, inner)
        return result

    def _embed(self, table: str, row: Row, relation: str, selection: Selection) -> Any:
        parent_key = f"{_singular(relation)}_id"
        if parent_key in row:
            # many-to-one
            target = next(
                (r for r in self._table(relation) if r.get("id") == row[parent_key]),
                None,
            )
            return self._project(relation, target, selection) if target is not None else None

        child_key = f"{_singular(table)}_id"
        children = self._table(relation)
        if children and not any(child_key in child for child in children):
            raise ValueError(f"No relation between {table} and {relation}")
        return [
            self._project(relation, child, selection)
            for child in children
            if child.get(child_key) == row.get("id")
        ]

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(self, table: str, row: Row) -> Row:
        """
        Insert a row and return the stored copy.

        Assigns an `id` and `created_at` when the caller leaves them out.
        """
        rows = self._table(table)
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid4()))
        stored.setdefault("created_at", _now_iso())
        rows.append(stored)

        logger.info(f"INSERT {table} id={stored['id']}")
        self._publish(ChangeEvent(operation=Operation.INSERT, table=table, new_row=copy.deepcopy(stored)))
        return copy.deepcopy(stored)

    def update(self, table: str, row_id: Any, patch: Row) -> Optional[Row]:
        """
        Apply a partial update to one row.

        Returns the updated row, or None if no row has that id.
        """
        for index, row in enumerate(self._table(table)):
            if row.get("id") == row_id:
                old_row = copy.deepcopy(row)
                updated = {**row, **copy.deepcopy(patch), "id": row_id}
                self._rows[table][index] = updated

                logger.info(f"UPDATE {table} id={row_id} fields={sorted(patch)}")
                self._publish(ChangeEvent(
                    operation=Operation.UPDATE,
                    table=table,
                    new_row=copy.deepcopy(updated),
                    old_row=old_row,
                ))
                return copy.deepcopy(updated)

        logger.warning(f"UPDATE {table} id={row_id}: row not found")
        return None

    def delete(self, table: str, row_id: Any) -> bool:
        """
        Delete one row.

        Returns True if the row existed and was removed, False otherwise.
        """
        rows = self._table(table)
        for index, row in enumerate(rows):
            if row.get("id") == row_id:
                removed = rows.pop(index)
                logger.info(f"DELETE {table} id={row_id}")
                self._publish(ChangeEvent(operation=Operation.DELETE, table=table, old_row=removed))
                return True
        return False

    def _publish(self, event: ChangeEvent) -> None:
        if self.change_feed is not None:
            self.change_feed.publish(event)
