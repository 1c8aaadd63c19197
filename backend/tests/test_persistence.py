"""Tests for the StorageAdapter protocol, SQLiteAdapter and DatabaseConfig."""

import datetime
import sqlite3

import pytest

from matte.errors import StorageConflict, StorageSchemaError
from matte.persistence.adapter import StorageAdapter
from matte.persistence.config import DatabaseConfig, create_adapter
from matte.persistence.sqlite import SQLiteAdapter, quote
from matte.schema import (
    boolean,
    date,
    entity,
    file,
    number,
    owned_entity,
    private_entity,
    string,
)


@pytest.fixture
def adapter():
    adapter = SQLiteAdapter(":memory:")
    adapter.connect()
    yield adapter
    adapter.close()


@pytest.fixture
def product():
    return entity("Product", [
        string("productName").required(),
        number("unitPrice"),
        boolean("inStock"),
        date("releasedOn"),
        file("images").array(),
    ]).build()


class TestStorageAdapterProtocol:
    """Verify SQLiteAdapter satisfies the StorageAdapter protocol."""

    def test_sqlite_adapter_is_instance(self):
        assert isinstance(SQLiteAdapter(":memory:"), StorageAdapter)

    def test_sqlite_adapter_has_conn_attribute(self):
        adapter = SQLiteAdapter(":memory:")
        assert adapter.conn is None
        adapter.connect()
        assert adapter.conn is not None
        adapter.close()
        assert adapter.conn is None

    def test_operations_require_connection(self, product):
        with pytest.raises(RuntimeError):
            SQLiteAdapter(":memory:").get(product, "x")


class TestSchema:
    def test_create_table_sql(self, product):
        statements = SQLiteAdapter().create_table_sql(product)
        table = statements[0]

        assert table.startswith('CREATE TABLE IF NOT EXISTS "product"')
        assert "id TEXT PRIMARY KEY" in table
        assert "owner_id TEXT" in table
        assert '"product_name" TEXT NOT NULL' in table
        assert '"unit_price" REAL' in table
        assert '"in_stock" INTEGER' in table
        assert '"images" TEXT' in table

    def test_instance_per_user_gets_unique_owner_index(self):
        definition = private_entity("Profile", [string("bio")]).lifecycle("instancePerUser").build()
        statements = SQLiteAdapter().create_table_sql(definition)
        assert any("CREATE UNIQUE INDEX" in s for s in statements)

    def test_default_lifecycle_has_no_unique_index(self, product):
        statements = SQLiteAdapter().create_table_sql(product)
        assert not any("UNIQUE" in s for s in statements)

    @pytest.mark.parametrize("name", ["Order", "Group", "User", "Select", "Table"])
    def test_sql_keyword_entity_names(self, adapter, name):
        definition = entity(name, [string("from"), string("where")]).build()
        adapter.initialize_entity(definition)

        row = adapter.insert(definition, {"from": "a", "where": "b"})
        assert adapter.get(definition, row["id"])["from"] == "a"

    def test_initialize_is_idempotent(self, adapter, product):
        adapter.initialize_entity(product)
        adapter.initialize_entity(product)

    def test_quote_escapes_double_quotes(self):
        assert quote('we"ird') == '"we""ird"'

    def test_initialize_adds_new_columns(self, adapter):
        adapter.initialize_entity(entity("Task", [string("title")]).build())
        widened = entity("Task", [string("title"), number("estimate").required()]).build()
        adapter.initialize_entity(widened)

        row = adapter.insert(widened, {"title": "x", "estimate": 3})
        assert row["estimate"] == 3

    def test_add_columns_sql_skips_existing(self, product):
        statements = SQLiteAdapter().add_columns_sql(
            product, ["id", "product_name", "unit_price", "in_stock", "released_on"]
        )
        assert statements == ['ALTER TABLE "product" ADD COLUMN "images" TEXT']

    def test_dropped_optional_column_is_kept(self, adapter):
        adapter.initialize_entity(entity("Task", [string("title"), string("notes")]).build())
        narrowed = entity("Task", [string("title")]).build()
        adapter.initialize_entity(narrowed)

        assert adapter.insert(narrowed, {"title": "x"})["notes"] is None

    def test_dropped_required_column_is_incompatible(self, adapter):
        adapter.initialize_entity(entity("Task", [string("title").required()]).build())
        renamed = entity("Task", [string("name")]).build()

        with pytest.raises(StorageSchemaError) as exc_info:
            adapter.check_compatible(renamed)
        assert exc_info.value.columns == ("title",)
        with pytest.raises(StorageSchemaError):
            adapter.initialize_entity(renamed)

    def test_instance_per_user_needs_one_record_per_owner(self, adapter):
        definition = private_entity("Profile", [string("bio")]).build()
        adapter.initialize_entity(definition)
        adapter.insert(definition, {"bio": "a", "owner_id": "alice"})
        adapter.insert(definition, {"bio": "b", "owner_id": "alice"})

        per_user = private_entity("Profile", [string("bio")]).lifecycle("instancePerUser").build()
        with pytest.raises(StorageSchemaError):
            adapter.check_compatible(per_user)

    def test_missing_table_is_compatible(self, adapter, product):
        adapter.check_compatible(product)


class TestCrud:
    def test_insert_generates_id_and_timestamps(self, adapter, product):
        adapter.initialize_entity(product)
        row = adapter.insert(product, {"product_name": "Lamp"})

        assert row["id"]
        assert row["created_at"]
        assert row["created_at"] == row["updated_at"]

    def test_insert_keeps_given_id(self, adapter, product):
        adapter.initialize_entity(product)
        row = adapter.insert(product, {"id": "fixed", "product_name": "Lamp"})
        assert row["id"] == "fixed"

    def test_duplicate_id_is_storage_conflict(self, adapter, product):
        adapter.initialize_entity(product)
        adapter.insert(product, {"id": "fixed", "product_name": "Lamp"})
        with pytest.raises(StorageConflict):
            adapter.insert(product, {"id": "fixed", "product_name": "Desk"})

    def test_missing_required_column_is_integrity_error(self, adapter, product):
        adapter.initialize_entity(product)
        with pytest.raises(sqlite3.IntegrityError):
            adapter.insert(product, {"unit_price": 3})

    def test_values_round_trip_by_type(self, adapter, product):
        adapter.initialize_entity(product)
        row = adapter.insert(product, {
            "product_name": "Lamp",
            "unit_price": 12.5,
            "in_stock": True,
            "released_on": datetime.date(2024, 5, 1),
            "images": ["a.png", "b.png"],
        })

        assert row["unit_price"] == 12.5
        assert row["in_stock"] is True
        assert row["released_on"] == "2024-05-01"
        assert row["images"] == ["a.png", "b.png"]

    def test_whole_numbers_read_back_as_int(self, adapter, product):
        adapter.initialize_entity(product)
        whole = adapter.insert(product, {"product_name": "Lamp", "unit_price": 5})
        fractional = adapter.insert(product, {"product_name": "Desk", "unit_price": 5.5})

        assert whole["unit_price"] == 5
        assert isinstance(whole["unit_price"], int)
        assert fractional["unit_price"] == 5.5

    def test_unknown_column_is_rejected(self, adapter, product):
        adapter.initialize_entity(product)
        with pytest.raises(ValueError):
            adapter.insert(product, {"product_name": "Lamp", "bogus": 1})

    def test_find_all_with_filters(self, adapter, product):
        adapter.initialize_entity(product)
        adapter.insert(product, {"product_name": "Lamp", "in_stock": True})
        adapter.insert(product, {"product_name": "Desk", "in_stock": False})

        rows = adapter.find_all(product, {"in_stock": True})
        assert [r["product_name"] for r in rows] == ["Lamp"]

    def test_find_all_newest_first(self, adapter, product):
        adapter.initialize_entity(product)
        adapter.insert(product, {"product_name": "First"})
        adapter.insert(product, {"product_name": "Second"})

        names = [r["product_name"] for r in adapter.find_all(product)]
        assert names == ["Second", "First"]

    def test_count(self, adapter):
        definition = owned_entity("Note", [string("body")]).build()
        adapter.initialize_entity(definition)
        adapter.insert(definition, {"body": "a", "owner_id": "alice"})
        adapter.insert(definition, {"body": "b", "owner_id": "bob"})

        assert adapter.count(definition) == 2
        assert adapter.count(definition, {"owner_id": "alice"}) == 1

    def test_update_changes_values_not_identity(self, adapter, product):
        adapter.initialize_entity(product)
        row = adapter.insert(product, {"product_name": "Lamp"})
        updated = adapter.update(
            product, row["id"], {"product_name": "Desk", "id": "other", "created_at": "x"}
        )

        assert updated["id"] == row["id"]
        assert updated["product_name"] == "Desk"
        assert updated["created_at"] == row["created_at"]

    def test_update_missing_row(self, adapter, product):
        adapter.initialize_entity(product)
        assert adapter.update(product, "missing", {"product_name": "Desk"}) is None

    def test_delete(self, adapter, product):
        adapter.initialize_entity(product)
        row = adapter.insert(product, {"product_name": "Lamp"})

        assert adapter.delete(product, row["id"]) is True
        assert adapter.get(product, row["id"]) is None
        assert adapter.delete(product, row["id"]) is False

    def test_unique_owner_index_rejects_second_instance(self, adapter):
        definition = private_entity("Profile", [string("bio")]).lifecycle("instancePerUser").build()
        adapter.initialize_entity(definition)
        adapter.insert(definition, {"bio": "hi", "owner_id": "alice"})

        with pytest.raises(StorageConflict):
            adapter.insert(definition, {"bio": "again", "owner_id": "alice"})
        adapter.insert(definition, {"bio": "hello", "owner_id": "bob"})


class TestDatabaseConfig:
    """Test DatabaseConfig creation from environment."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("MATTE_DB_PATH", raising=False)

    def test_from_env_database_url(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///tmp/app.db")
        config = DatabaseConfig.from_env()
        assert config.url == "sqlite:///tmp/app.db"
        assert config.is_sqlite

    def test_from_env_db_path(self, monkeypatch):
        monkeypatch.setenv("MATTE_DB_PATH", "/var/data/matte.db")
        assert DatabaseConfig.from_env().url == "sqlite:////var/data/matte.db"

    def test_from_env_base_path(self, tmp_path):
        config = DatabaseConfig.from_env(tmp_path)
        assert config.sqlite_path == str(tmp_path / "data" / "matte.db")

    def test_from_env_default(self):
        assert DatabaseConfig.from_env().url == "sqlite:///matte.db"

    def test_create_adapter_sqlite(self, tmp_path):
        adapter = create_adapter(DatabaseConfig(f"sqlite:///{tmp_path / 'x.db'}"))
        assert isinstance(adapter, SQLiteAdapter)
        adapter.connect()
        assert (tmp_path / "x.db").exists()
        adapter.close()

    def test_create_adapter_creates_parent_directory(self, tmp_path):
        adapter = create_adapter(DatabaseConfig.from_env(tmp_path))
        adapter.connect()
        assert (tmp_path / "data").is_dir()
        adapter.close()

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError):
            create_adapter(DatabaseConfig("postgresql://localhost/db"))
