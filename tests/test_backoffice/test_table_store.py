"""
Tests for the TableStore.

These tests verify fixture loading, PostgREST-style selects with embedded
relations, and that every write is reported to the change feed.
"""

import pytest

from backoffice.errors import UnknownTableError
from backoffice.models import Operation
from backoffice.table_store import TableStore, parse_select
from realtime.change_feed import ChangeFeed, ChannelBinding


@pytest.fixture
def recorded(feed: ChangeFeed, table_store: TableStore) -> list:
    """Every event the table store publishes on any table."""
    events = []
    for table in table_store.tables:
        feed.join(ChannelBinding(f"record_{table}", table, Operation.ALL, None, events.append))
    return events


class TestParseSelect:
    """Tests for select string parsing."""

    def test_empty_select_is_star(self):
        assert parse_select(None).star is True
        assert parse_select("  ").star is True

    def test_plain_columns(self):
        selection = parse_select("id, name")

        assert selection.star is False
        assert selection.columns == ["id", "name"]
        assert selection.embeds == {}

    def test_nested_embeds(self):
        selection = parse_select("*, customers(id, name), order_items(id, products(id, name))")

        assert selection.star is True
        assert selection.embeds["customers"].columns == ["id", "name"]
        items = selection.embeds["order_items"]
        assert items.columns == ["id"]
        assert items.embeds["products"].columns == ["id", "name"]

    @pytest.mark.parametrize("text", ["*, customers(id, name", "id)", "*, (id)"])
    def test_malformed_select_raises(self, text: str):
        with pytest.raises(ValueError):
            parse_select(text)


class TestTableStoreReads:
    """Tests for query and get."""

    def test_query_all_rows(self, table_store: TableStore):
        customers = table_store.query("customers")

        assert len(customers) == 4
        assert customers[0]["name"] == "Aziz Karimov"

    def test_query_projection(self, table_store: TableStore):
        products = table_store.query("products", select="id, sale_price")

        assert products[0] == {"id": "prod-001", "sale_price": 150000}

    def test_query_filters_order_limit(self, table_store: TableStore):
        active = table_store.query(
            "products",
            select="id",
            filters={"is_active": True},
            order="sale_price.desc",
            limit=2,
        )

        assert [p["id"] for p in active] == ["prod-002", "prod-003"]

    def test_query_ascending_order(self, table_store: TableStore):
        orders = table_store.query("orders", select="id", order="created_at")

        assert [o["id"] for o in orders] == ["ord-001", "ord-002", "ord-003"]

    def test_many_to_one_embed(self, table_store: TableStore):
        orders = table_store.query("orders", select="id, customers(name, phone)", filters={"id": "ord-002"})

        assert orders == [{
            "id": "ord-002",
            "customers": {"name": "Dilnoza Yusupova", "phone": "+998907654321"},
        }]

    def test_one_to_many_embed_with_nested_relation(self, table_store: TableStore):
        orders = table_store.query(
            "orders",
            select="id, order_items(quantity, products(name))",
            filters={"id": "ord-001"},
        )

        items = orders[0]["order_items"]
        assert items == [{"quantity": 2, "products": {"name": "Wireless Mouse M200"}}]

    def test_unknown_relation_raises(self, table_store: TableStore):
        with pytest.raises(ValueError, match="No relation"):
            table_store.query("orders", select="*, employees(name)")

    def test_unknown_table_raises(self, table_store: TableStore):
        with pytest.raises(UnknownTableError):
            table_store.query("invoices")

    def test_missing_fixture_means_empty_table(self, tmp_path):
        store = TableStore(data_dir=tmp_path)

        assert store.query("orders") == []

    def test_returned_rows_are_copies(self, table_store: TableStore):
        order = table_store.query("orders", filters={"id": "ord-001"})[0]
        order["status"] = "tampered"

        assert table_store.get("orders", "ord-001")["status"] == "completed"


class TestTableStoreWrites:
    """Tests for insert, update and delete, and the events they publish."""

    def test_insert_assigns_id_and_created_at(self, table_store: TableStore, recorded: list):
        row = table_store.insert("orders", {"customer_name": "Aziz", "total": 150000, "source": "website"})

        assert row["id"]
        assert row["created_at"]
        assert table_store.get("orders", row["id"])["total"] == 150000

        assert len(recorded) == 1
        event = recorded[0]
        assert event.operation is Operation.INSERT
        assert event.table == "orders"
        assert event.new_row["id"] == row["id"]
        assert event.old_row is None

    def test_insert_keeps_caller_id(self, table_store: TableStore):
        row = table_store.insert("orders", {"id": "abc123", "total": 1})

        assert row["id"] == "abc123"

    def test_update_publishes_old_and_new(self, table_store: TableStore, recorded: list):
        updated = table_store.update("orders", "ord-003", {"status": "completed"})

        assert updated["status"] == "completed"
        assert updated["customer_name"] == "Bekzod Rahimov"

        event = recorded[0]
        assert event.operation is Operation.UPDATE
        assert event.old_row["status"] == "new"
        assert event.new_row["status"] == "completed"

    def test_update_missing_row(self, table_store: TableStore, recorded: list):
        assert table_store.update("orders", "nonexistent", {"status": "completed"}) is None
        assert recorded == []

    def test_update_cannot_change_id(self, table_store: TableStore):
        updated = table_store.update("orders", "ord-001", {"id": "other", "note": "x"})

        assert updated["id"] == "ord-001"

    def test_delete_publishes_old_row(self, table_store: TableStore, recorded: list):
        assert table_store.delete("orders", "ord-002") is True
        assert table_store.get("orders", "ord-002") is None

        event = recorded[0]
        assert event.operation is Operation.DELETE
        assert event.old_row["id"] == "ord-002"
        assert event.new_row is None

    def test_delete_missing_row(self, table_store: TableStore, recorded: list):
        assert table_store.delete("orders", "nonexistent") is False
        assert recorded == []

    def test_writes_are_published_in_commit_order(self, table_store: TableStore, recorded: list):
        row = table_store.insert("orders", {"total": 1})
        table_store.update("orders", row["id"], {"total": 2})
        table_store.delete("orders", row["id"])

        assert [e.operation for e in recorded] == [Operation.INSERT, Operation.UPDATE, Operation.DELETE]

    def test_reload_discards_changes(self, table_store: TableStore):
        table_store.delete("orders", "ord-001")
        table_store.reload()

        assert table_store.get("orders", "ord-001") is not None
