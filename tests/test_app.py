from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.sequence_store import SequenceStore, build_default_sequence_store
from models.errors import StorageError
from services.processor import BatchProcessor, build_default_processor
from settings import get_settings
from storage.record_log import RecordLog, build_default_record_log

SCENARIO_BATCH = {
    "count": 2,
    "data": [
        {"id": 1, "seq": 10, "volt": 3.7, "temp": 21, "rssi": -60},
        {"id": 1, "seq": 10, "volt": 3.7, "temp": 21, "rssi": -60},
    ],
}


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def processor(data_dir: Path) -> BatchProcessor:
    return BatchProcessor(
        sequence_store=SequenceStore(root_path=data_dir),
        record_log=RecordLog(root_path=data_dir),
    )


@pytest.fixture
def api_client(processor: BatchProcessor, monkeypatch) -> Iterator[TestClient]:
    def build_test_processor() -> BatchProcessor:
        return processor

    build_test_processor.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_processor", build_test_processor)
    monkeypatch.setattr("app.api.build_default_processor", build_test_processor)

    app = create_app()
    with TestClient(app) as client:
        yield client


def test_lifespan_clears_processor_cache(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TELEMETRY_DATA_DIR", str(tmp_path / "lifespan"))
    for cache in (get_settings, build_default_sequence_store, build_default_record_log):
        cache.cache_clear()
    build_default_processor.cache_clear()
    app = create_app()

    try:
        with TestClient(app):
            processor_during = build_default_processor()
            assert processor_during.sequence_store.root_path == tmp_path / "lifespan"

        assert build_default_processor() is not processor_during
    finally:
        build_default_processor.cache_clear()
        for cache in (get_settings, build_default_sequence_store, build_default_record_log):
            cache.cache_clear()


def test_duplicate_batch_scenario(api_client: TestClient, data_dir: Path) -> None:
    first = api_client.post("/ingest", json=SCENARIO_BATCH)
    second = api_client.post("/ingest", json=SCENARIO_BATCH)

    assert first.status_code == 200
    assert first.json() == {"update": 1}
    assert second.status_code == 200
    assert second.json() == {"update": 0}

    assert (data_dir / "telemetry_1.seq").read_text() == "10"
    lines = (data_dir / "telemetry_1.csv").read_text().splitlines()
    assert len(lines) == 1
    assert lines[0].endswith(",1,3.7,21,-60,10")
    assert (data_dir / "telemetry_all.csv").read_text().splitlines() == lines


def test_empty_data_returns_zero_without_writes(api_client: TestClient, data_dir: Path) -> None:
    response = api_client.post("/ingest", json={"count": 0, "data": []})

    assert response.status_code == 200
    assert response.json() == {"update": 0}
    assert list(data_dir.iterdir()) == []


@pytest.mark.parametrize(
    "body",
    [
        {"count": 1},
        {"count": 1, "data": {"id": 1, "seq": 1}},
        {"count": 1, "data": "nope"},
        {"data": [{"id": 1, "seq": 1}]},
        {"count": "many", "data": [{"id": 1, "seq": 1}]},
        {"count": True, "data": [{"id": 1, "seq": 1}]},
        {"count": None, "data": [{"id": 1, "seq": 1}]},
        {"count": "1e400", "data": []},
        [{"id": 1, "seq": 1}],
    ],
)
def test_malformed_request_is_rejected(api_client: TestClient, data_dir: Path, body) -> None:
    response = api_client.post("/ingest", json=body)

    assert response.status_code == 400
    assert "detail" in response.json()
    assert list(data_dir.iterdir()) == []


def test_invalid_json_is_rejected(api_client: TestClient, data_dir: Path) -> None:
    response = api_client.post(
        "/ingest",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert list(data_dir.iterdir()) == []


def test_numeric_string_count_is_accepted(api_client: TestClient) -> None:
    response = api_client.post(
        "/ingest", json={"count": "1", "data": [{"id": 3, "seq": 1}]}
    )

    assert response.status_code == 200
    assert response.json() == {"update": 1}


def test_count_is_not_checked_against_data(api_client: TestClient) -> None:
    response = api_client.post(
        "/ingest",
        json={"count": 99, "data": [{"id": 3, "seq": 1}, {"id": 4, "seq": 1}]},
    )

    assert response.json() == {"update": 2}


def test_malformed_entries_are_skipped(api_client: TestClient, processor: BatchProcessor) -> None:
    response = api_client.post(
        "/ingest",
        json={
            "count": 3,
            "data": [
                {"seq": 1, "volt": 3.1},
                {"id": "x", "seq": 2},
                {"id": 5, "seq": 9, "volt": 3.6, "temp": 19.5, "rssi": -71},
            ],
        },
    )

    assert response.json() == {"update": 1}
    assert processor.sequence_store.get(5) == 9


def test_storage_failure_returns_server_error(monkeypatch) -> None:
    class BrokenStore(SequenceStore):
        def get(self, device_id: int):
            raise StorageError("permission denied")

    broken = BatchProcessor(sequence_store=BrokenStore(), record_log=RecordLog())

    def build_broken_processor() -> BatchProcessor:
        return broken

    build_broken_processor.cache_clear = lambda: None  # type: ignore[attr-defined]
    monkeypatch.setattr("app.main.build_default_processor", build_broken_processor)
    monkeypatch.setattr("app.api.build_default_processor", build_broken_processor)

    with TestClient(create_app()) as client:
        response = client.post("/ingest", json=SCENARIO_BATCH)

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to persist telemetry batch."}


def test_health_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_out_of_range_device_id_does_not_block_batch(api_client: TestClient, processor: BatchProcessor) -> None:
    body = {"count": 2, "data": [{"id": int("9" * 300), "seq": 1}, {"id": 1, "seq": 1}]}

    first = api_client.post("/ingest", json=body)
    second = api_client.post("/ingest", json=body)

    assert first.status_code == 200
    assert first.json() == {"update": 1}
    assert second.json() == {"update": 0}
    assert processor.sequence_store.get(1) == 1


def test_very_large_integer_count_is_accepted(api_client: TestClient) -> None:
    response = api_client.post(
        "/ingest",
        content=b'{"count": 1' + b"0" * 400 + b', "data": []}',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json() == {"update": 0}
