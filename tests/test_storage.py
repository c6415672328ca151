import json

from daycare_portal.client.storage import (
    LAST_ACTIVITY_KEY, PENDING_DISPLAY_NAME_KEY, PENDING_PHONE_KEY, SESSION_KEYS,
    JsonFileStorage, MemoryStorage, open_storage,
)


def test_json_storage_survives_reopen(tmp_path):
    path = tmp_path / "session.json"
    storage = JsonFileStorage(path)
    storage.set(LAST_ACTIVITY_KEY, 1234.5)
    storage.set(PENDING_PHONE_KEY, "555")

    reopened = JsonFileStorage(path)
    assert reopened.get(LAST_ACTIVITY_KEY) == 1234.5
    assert reopened.get(PENDING_PHONE_KEY) == "555"

    reopened.remove(*SESSION_KEYS)
    assert json.loads(path.read_text()) == {}


def test_json_storage_ignores_corrupt_file(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json")
    storage = JsonFileStorage(path)
    assert storage.get(LAST_ACTIVITY_KEY) is None
    storage.set(LAST_ACTIVITY_KEY, 1)
    assert json.loads(path.read_text()) == {LAST_ACTIVITY_KEY: 1}


def test_json_storage_creates_parent_directory(tmp_path):
    path = tmp_path / "nested" / "dir" / "session.json"
    JsonFileStorage(path).set(PENDING_PHONE_KEY, "1")
    assert path.exists()
    assert not [p for p in path.parent.iterdir() if p.name.startswith(".session-")]


def test_open_storage(tmp_path):
    assert type(open_storage(None)) is MemoryStorage
    assert isinstance(open_storage(str(tmp_path / "s.json")), JsonFileStorage)


def test_instances_sharing_a_file_see_each_others_changes(tmp_path):
    path = tmp_path / "session.json"
    JsonFileStorage(path).set(PENDING_DISPLAY_NAME_KEY, "Jane")
    first = JsonFileStorage(path)
    second = JsonFileStorage(path)

    second.remove(PENDING_DISPLAY_NAME_KEY)
    first.set(LAST_ACTIVITY_KEY, 123.0)

    assert first.get(PENDING_DISPLAY_NAME_KEY) is None
    assert json.loads(path.read_text()) == {LAST_ACTIVITY_KEY: 123.0}


def test_take_claims_values_once(tmp_path):
    path = tmp_path / "session.json"
    first = JsonFileStorage(path)
    second = JsonFileStorage(path)
    first.set(PENDING_PHONE_KEY, "555")

    assert first.take(PENDING_DISPLAY_NAME_KEY, PENDING_PHONE_KEY) == {PENDING_PHONE_KEY: "555"}
    assert second.take(PENDING_DISPLAY_NAME_KEY, PENDING_PHONE_KEY) == {}


def test_restore_does_not_overwrite_newer_values():
    storage = MemoryStorage({PENDING_PHONE_KEY: "1", PENDING_DISPLAY_NAME_KEY: "Jane"})
    taken = storage.take(PENDING_PHONE_KEY, PENDING_DISPLAY_NAME_KEY)
    storage.set(PENDING_PHONE_KEY, "2")

    storage.restore(taken)
    assert storage.get(PENDING_PHONE_KEY) == "2"
    assert storage.get(PENDING_DISPLAY_NAME_KEY) == "Jane"
