"""
JSON Storage / Mapping Store Tests
==================================
Provenance rules, read/write degradation and the on-disk layout.
"""
import json
from unittest.mock import patch

from tickettrail.models.git_info import GitInfo
from tickettrail.storage.json_storage import JsonStorage
from tickettrail.storage.mapping_store import MappingStore

GIT = GitInfo(author="A", commit="C", message="M", branch="main")


def _stamps(*values):
    return patch("tickettrail.storage.json_storage.utc_now", side_effect=list(values))


# ===================================================================
# Reads degrade to empty
# ===================================================================
def test_missing_file_is_empty_store(tmp_path):
    storage = JsonStorage(str(tmp_path / "missing.json"))
    assert storage.get_all_mappings() == {}


def test_malformed_file_is_empty_store(tmp_path):
    path = tmp_path / "db.json"
    path.write_text("{not json", encoding="utf-8")
    storage = JsonStorage(str(path))
    assert storage.get_all_mappings() == {}


def test_malformed_entry_is_skipped(tmp_path):
    path = tmp_path / "db.json"
    path.write_text(json.dumps({
        "good": {"issueNumber": 1, "status": "open", "lastFailure": "t", "lastUpdate": "t"},
        "bad": {"status": "maybe"},
    }), encoding="utf-8")
    storage = JsonStorage(str(path))
    assert list(storage.get_all_mappings()) == ["good"]


def test_legacy_wrapper_is_accepted(tmp_path):
    path = tmp_path / "db.json"
    path.write_text(json.dumps({"testIdentifiers": {
        "abc": {"issueNumber": 9, "status": "closed", "lastFailure": "t", "lastUpdate": "t"},
    }}), encoding="utf-8")
    storage = JsonStorage(str(path))
    assert storage.get_mapping("abc").issue_number == 9


# ===================================================================
# set_mapping
# ===================================================================
def test_set_open_mapping_writes_camel_case_file(tmp_path):
    path = tmp_path / "nested" / "db.json"
    storage = JsonStorage(str(path))
    with _stamps("T1"):
        storage.set_mapping("id1", 42, "open", GIT, "src/a.test.ts", "Suite > a")

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk["id1"] == {
        "issueNumber": 42,
        "status": "open",
        "lastFailure": "T1",
        "lastUpdate": "T1",
        "testFilePath": "src/a.test.ts",
        "testName": "Suite > a",
    }


def test_set_closed_mapping_captures_provenance_with_fallbacks(tmp_path):
    storage = JsonStorage(str(tmp_path / "db.json"))
    storage.set_mapping("id1", 1, "closed", GitInfo())
    mapping = storage.get_mapping("id1")
    assert mapping.fixed_by == "Unknown"
    assert mapping.fix_commit == "Unknown"
    assert mapping.fix_message == ""


def test_set_closed_keeps_previous_last_failure(tmp_path):
    storage = JsonStorage(str(tmp_path / "db.json"))
    with _stamps("T1", "T2"):
        storage.set_mapping("id1", 1, "open")
        storage.set_mapping("id1", 1, "closed", GIT)
    mapping = storage.get_mapping("id1")
    assert mapping.last_failure == "T1"
    assert mapping.last_update == "T2"


# ===================================================================
# update_mapping
# ===================================================================
def test_update_open_to_closed_captures_provenance(tmp_path):
    storage = JsonStorage(str(tmp_path / "db.json"))
    storage.set_mapping("id1", 1, "open")
    storage.update_mapping("id1", {"status": "closed"}, GIT)
    mapping = storage.get_mapping("id1")
    assert (mapping.status, mapping.fixed_by, mapping.fix_commit, mapping.fix_message) == ("closed", "A", "C", "M")


def test_closed_to_open_preserves_provenance(tmp_path):
    storage = JsonStorage(str(tmp_path / "db.json"))
    with _stamps("T1", "T2", "T4"):
        storage.set_mapping("id1", 1, "open")
        storage.update_mapping("id1", {"status": "closed"}, GIT)
        storage.update_mapping("id1", {"status": "open", "last_failure": "T3"})

    mapping = storage.get_mapping("id1")
    assert mapping.status == "open"
    assert (mapping.fixed_by, mapping.fix_commit, mapping.fix_message) == ("A", "C", "M")
    assert mapping.last_failure == "T3"
    assert mapping.last_update == "T4"


def test_status_only_update_does_not_capture_provenance(tmp_path):
    storage = JsonStorage(str(tmp_path / "db.json"))
    storage.set_mapping("id1", 1, "open")
    storage.update_mapping("id1", {"status": "closed"})
    mapping = storage.get_mapping("id1")
    assert mapping.status == "closed"
    assert mapping.fixed_by is None


def test_update_backfills_only_missing_test_info(tmp_path):
    storage = JsonStorage(str(tmp_path / "db.json"))
    storage.set_mapping("id1", 1, "open")
    storage.update_mapping("id1", {}, None, "src/a.test.ts", "first")
    storage.update_mapping("id1", {}, None, "src/b.test.ts", "second")
    mapping = storage.get_mapping("id1")
    assert mapping.test_file_path == "src/a.test.ts"
    assert mapping.test_name == "first"


def test_update_without_mapping_is_noop(tmp_path):
    path = tmp_path / "db.json"
    storage = JsonStorage(str(path))
    storage.update_mapping("ghost", {"status": "closed"}, GIT)
    assert storage.get_mapping("ghost") is None
    assert not path.exists()


# ===================================================================
# Writes never raise
# ===================================================================
def test_write_failure_is_swallowed_and_memory_updated(tmp_path):
    storage = JsonStorage(str(tmp_path / "db.json"))
    with patch("tickettrail.storage.json_storage.os.replace", side_effect=OSError("disk full")):
        storage.set_mapping("id1", 5, "open")
    assert storage.get_mapping("id1").issue_number == 5


def test_mappings_survive_reload(tmp_path):
    path = str(tmp_path / "db.json")
    JsonStorage(path).set_mapping("id1", 3, "open", None, "f.ts", "n")
    reloaded = JsonStorage(path)
    assert reloaded.get_mapping("id1").issue_number == 3


# ===================================================================
# MappingStore
# ===================================================================
def test_mapping_store_delegates_and_reports_missing(tmp_path):
    store = MappingStore(str(tmp_path / "db.json"))
    assert store.update_mapping("ghost", {"status": "closed"}) is False

    store.set_mapping("id1", 7, "open")
    assert store.get_issue_mapping("id1").issue_number == 7
    assert store.update_issue_status("id1", "closed") is True
    assert store.get_mapping("id1").status == "closed"
    assert store.get_mapping("id1").fixed_by is None
    assert store.get_all_mapping_entries()[0][0] == "id1"

    assert store.remove_mapping("id1") is True
    assert store.remove_mapping("id1") is False
    assert store.get_all_mappings() == {}


def test_lock_for_is_stable_per_identifier(tmp_path):
    store = MappingStore(str(tmp_path / "db.json"))
    assert store.lock_for("a") is store.lock_for("a")
    assert store.lock_for("a") is not store.lock_for("b")
