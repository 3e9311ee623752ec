"""Tests for key-value storage backends."""
import json

from bankvisit.kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore


class TestInMemoryKeyValueStore:

    def test_get_default_for_missing_key(self):
        store = InMemoryKeyValueStore()
        assert store.get("missing") is None
        assert store.get("missing", []) == []

    def test_set_get_remove(self):
        store = InMemoryKeyValueStore()
        store.set("k", {"a": 1})
        assert store.get("k") == {"a": 1}
        store.remove("k")
        assert store.get("k") is None

    def test_values_are_copied(self):
        """Mutating a returned value does not change stored state."""
        store = InMemoryKeyValueStore()
        value = {"slots": [1, 2]}
        store.set("k", value)
        value["slots"].append(3)
        store.get("k")["slots"].append(4)
        assert store.get("k") == {"slots": [1, 2]}

    def test_remove_missing_key_is_noop(self):
        InMemoryKeyValueStore().remove("nothing")


class TestJsonFileKeyValueStore:

    def test_writes_json_document(self, tmp_path):
        path = tmp_path / "data" / "session.json"
        store = JsonFileKeyValueStore(str(path))
        store.set("appointments", [{"id": "APP-1234"}])

        with open(path, encoding="utf-8") as f:
            assert json.load(f) == {"appointments": [{"id": "APP-1234"}]}

    def test_survives_new_instance(self, tmp_path):
        path = str(tmp_path / "session.json")
        JsonFileKeyValueStore(path).set("counts", {"10:00 AM": 3})
        assert JsonFileKeyValueStore(path).get("counts") == {"10:00 AM": 3}

    def test_missing_file_reads_default(self, tmp_path):
        store = JsonFileKeyValueStore(str(tmp_path / "none.json"))
        assert store.get("anything", "fallback") == "fallback"

    def test_remove(self, tmp_path):
        store = JsonFileKeyValueStore(str(tmp_path / "s.json"))
        store.set("a", 1)
        store.set("b", 2)
        store.remove("a")
        assert store.get("a") is None
        assert store.get("b") == 2
