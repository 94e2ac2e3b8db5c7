import json

import pytest

from seatmap.errors import RegistryUnreadable
from seatmap.models.schemas import Registry, SeatRecord
from seatmap.services.registry_store import RegistryStore

REGISTRY = {
    "version": 3,
    "rooms": [
        {
            "id": "2-1",
            "name": "Room 2-1",
            "description": "Lecture room",
            "image": "/maps/Room 2-1.png",
            "width": 2480,
            "height": 3508,
            "capacity": 2,
            "seats": [{"id": "1", "x": 100, "y": 200}, {"id": "2", "x": 180.5, "y": 200}],
            "floor": 2,
        },
        {"id": "2-2", "name": "Room 2-2", "image": "/maps/Room 2-2.png", "seats": []},
    ],
}


def _write(tmp_path, payload) -> RegistryStore:
    path = tmp_path / "registry.json"
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
    return RegistryStore(path)


def test_round_trip_preserves_unknown_keys(tmp_path) -> None:
    store = _write(tmp_path, REGISTRY)
    registry = store.load()
    assert registry.find("2-1").capacity == 2
    assert registry.find("2-2").capacity is None
    assert registry.find("nope") is None

    store.save(registry)
    saved = json.loads(store.path.read_text(encoding="utf-8"))
    assert saved == REGISTRY


def test_saved_seats_keep_integer_coordinates(tmp_path) -> None:
    store = _write(tmp_path, REGISTRY)
    registry = store.load()
    registry.find("2-2").seats = [SeatRecord(id="1", x=12, y=34)]
    store.save(registry)

    saved = json.loads(store.path.read_text(encoding="utf-8"))
    assert saved["rooms"][1]["seats"] == [{"id": "1", "x": 12, "y": 34}]
    assert isinstance(saved["rooms"][1]["seats"][0]["x"], int)


def test_save_leaves_no_temp_files(tmp_path) -> None:
    store = _write(tmp_path, REGISTRY)
    store.save(store.load())
    assert [p.name for p in tmp_path.iterdir()] == ["registry.json"]


def test_failed_save_keeps_previous_file(tmp_path, monkeypatch) -> None:
    store = _write(tmp_path, REGISTRY)
    before = store.path.read_text(encoding="utf-8")
    registry = store.load()

    def explode(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("seatmap.services.registry_store.os.replace", explode)
    with pytest.raises(OSError):
        store.save(registry)
    assert store.path.read_text(encoding="utf-8") == before
    assert [p.name for p in tmp_path.iterdir()] == ["registry.json"]


@pytest.mark.parametrize(
    "payload",
    ["{not json", "[1, 2, 3]", json.dumps({"rooms": [{"id": "x"}]})],
)
def test_unreadable_registry(tmp_path, payload) -> None:
    with pytest.raises(RegistryUnreadable):
        _write(tmp_path, payload).load()


def test_missing_registry(tmp_path) -> None:
    with pytest.raises(RegistryUnreadable):
        RegistryStore(tmp_path / "missing.json").load()


def test_blank_capacity_reads_as_unknown() -> None:
    registry = Registry.model_validate({"rooms": [{"id": "a", "image": "/maps/a.png", "capacity": ""}]})
    assert registry.rooms[0].capacity is None
