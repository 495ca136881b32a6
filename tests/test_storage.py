"""
Tests for storage backends and transaction support
"""

import pytest

from inflation_treasury.storage import (
    InMemoryStorage, SQLiteStorage, SEQUENCES_TABLE, composite_key, next_sequence,
    quote_identifier
)


test_data = {
    "id": "alice",
    "created_at": 1000,
    "balance": 10000,
    "flags": {"locked": False}
}


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    """Each storage backend behind the same interface"""
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "storage.db")
    yield backend
    backend.close()


class TestStorageInterface:
    """Behaviour shared by every backend"""

    def test_basic_operations(self, storage):
        """Test basic CRUD operations"""
        storage.save("accounts", "alice", test_data)
        assert storage.load("accounts", "alice") == test_data

        assert storage.exists("accounts", "alice")
        assert not storage.exists("accounts", "bob")
        assert storage.load("accounts", "bob") is None

        storage.save("accounts", "bob", {"id": "bob", "balance": 5})
        assert len(storage.load_all("accounts")) == 2
        assert storage.count("accounts") == 2

        results = storage.find("accounts", {"balance": 5})
        assert [r["id"] for r in results] == ["bob"]

        storage.clear_table("accounts")
        assert storage.count("accounts") == 0

    def test_unknown_table_is_empty(self, storage):
        """Test an untouched table reads as empty"""
        assert storage.load_all("nothing") == []
        assert storage.count("nothing") == 0

    @pytest.mark.parametrize("table", ["order", "select", "nothing", 'odd"name', "with space"])
    def test_keyword_and_unusual_table_names(self, storage, table):
        """Test table names that are SQL keywords or need escaping"""
        storage.save(table, "a", {"id": "a", "v": 1})
        storage.save(table, "a", {"id": "a", "v": 2})
        assert storage.exists(table, "a")
        assert storage.load(table, "a") == {"id": "a", "v": 2}
        assert storage.find(table, {"v": 2}) == [{"id": "a", "v": 2}]
        assert storage.count(table) == 1
        storage.clear_table(table)
        assert storage.load_all(table) == []

    def test_upsert_keeps_insertion_order(self, storage):
        """Test an upsert keeps the record's original position"""
        storage.save("t", "a", {"id": "a", "v": 1})
        storage.save("t", "b", {"id": "b", "v": 1})
        storage.save("t", "a", {"id": "a", "v": 2})

        records = storage.load_all("t")
        assert [r["id"] for r in records] == ["a", "b"]
        assert records[0]["v"] == 2
        assert storage.count("t") == 2

    def test_loaded_records_are_copies(self, storage):
        """Test mutating a loaded record does not change storage"""
        storage.save("accounts", "alice", test_data)
        loaded = storage.load("accounts", "alice")
        loaded["flags"]["locked"] = True
        assert storage.load("accounts", "alice")["flags"]["locked"] is False

    def test_atomic_commit(self, storage):
        """Test writes inside atomic commit together"""
        with storage.atomic():
            storage.save("t", "a", {"id": "a"})
            storage.save("t", "b", {"id": "b"})
        assert storage.count("t") == 2

    def test_atomic_rollback(self, storage):
        """Test a failure inside atomic discards every write"""
        storage.save("t", "a", {"id": "a", "v": 1})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("t", "a", {"id": "a", "v": 2})
                storage.save("t", "b", {"id": "b"})
                storage.save("other", "x", {"id": "x"})
                raise RuntimeError("boom")

        assert storage.load("t", "a") == {"id": "a", "v": 1}
        assert not storage.exists("t", "b")
        assert storage.count("other") == 0

    def test_nested_transactions_join_outer(self, storage):
        """Test an inner atomic block joins the outer one"""
        with pytest.raises(RuntimeError):
            with storage.atomic():
                with storage.atomic():
                    storage.save("t", "inner", {"id": "inner"})
                storage.save("t", "outer", {"id": "outer"})
                raise RuntimeError("boom")

        assert storage.count("t") == 0


class TestSQLiteStorage:
    """SQLite-specific persistence"""

    def test_reopen(self, tmp_path):
        """Test data survives closing and reopening the database"""
        db_path = tmp_path / "reopen.db"
        storage = SQLiteStorage(db_path)
        storage.save("accounts", "alice", test_data)
        storage.close()

        reopened = SQLiteStorage(db_path)
        assert reopened.load("accounts", "alice") == test_data
        reopened.close()

    def test_rolled_back_writes_do_not_survive_reopen(self, tmp_path):
        """Test rolled back writes are not on disk"""
        db_path = tmp_path / "rollback.db"
        storage = SQLiteStorage(db_path)
        storage.save("t", "kept", {"id": "kept"})
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("t", "lost", {"id": "lost"})
                raise RuntimeError("boom")
        storage.close()

        reopened = SQLiteStorage(db_path)
        assert [r["id"] for r in reopened.load_all("t")] == ["kept"]
        reopened.close()

    def test_table_created_in_rolled_back_transaction(self):
        """Test a table created in a rolled back transaction is usable after"""
        storage = SQLiteStorage()
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("fresh", "a", {"id": "a"})
                raise RuntimeError("boom")

        # Table must be recreated after the rollback dropped it
        storage.save("fresh", "b", {"id": "b"})
        assert storage.count("fresh") == 1
        storage.close()


class TestInMemoryStorage:

    def test_get_all_data(self):
        """Test the full data dump"""
        storage = InMemoryStorage()
        storage.save("t", "a", {"id": "a"})
        assert storage.get_all_data() == {"t": {"a": {"id": "a"}}}


class TestSequences:
    """Per-owner id assignment"""

    def test_composite_key(self):
        """Test owner-scoped record keys"""
        assert composite_key("alice", 3) == "alice:3"

    def test_sequences_are_per_owner_and_kind(self, storage):
        """Test sequences are per owner and kind"""
        assert next_sequence(storage, "alice", "deposit") == 1
        assert next_sequence(storage, "alice", "deposit") == 2
        assert next_sequence(storage, "alice", "goal") == 1
        assert next_sequence(storage, "bob", "deposit") == 1

        record = storage.load(SEQUENCES_TABLE, "alice:deposit")
        assert record["value"] == 2

    def test_sequence_rolls_back(self, storage):
        """Test a rolled back id is handed out again"""
        next_sequence(storage, "alice", "deposit")
        with pytest.raises(RuntimeError):
            with storage.atomic():
                next_sequence(storage, "alice", "deposit")
                raise RuntimeError("boom")
        assert next_sequence(storage, "alice", "deposit") == 2

    def test_quote_identifier(self):
        """Test identifiers are double-quoted with embedded quotes doubled"""
        assert quote_identifier("accounts") == '"accounts"'
        assert quote_identifier('a"b') == '"a""b"'
