import json
import logging
from pathlib import Path
from typing import Callable, List

import pytest
import requests

from hpcgame import catalog as catalog_module
from hpcgame.catalog import CatalogCache, fetch_catalog
from hpcgame.errors import CatalogUnavailable, FetchFailed, ValidationFailed, WriteFailed

DAY = 86400
NOW = 1_700_000_000


class Fetcher:
    def __init__(self, payload: bytes = b"", error: Exception = None) -> None:
        self.payload = payload
        self.error = error
        self.calls: List[str] = []

    def __call__(self, url: str) -> bytes:
        self.calls.append(url)
        if self.error:
            raise self.error
        return self.payload


def clock(now: int) -> Callable[[], float]:
    return lambda: float(now)


def seed(state_dir: Path, payload: bytes, timestamp: str) -> None:
    state_dir.mkdir(parents=True, exist_ok=True)
    (state_dir / "partitions.json").write_bytes(payload)
    (state_dir / "partition_last_update").write_text(timestamp)


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / ".hpcgame"


def test_first_load_fetches_and_persists(state_dir: Path, catalog_payload: bytes) -> None:
    fetcher = Fetcher(catalog_payload)
    cache = CatalogCache(state_dir, url="http://catalog", fetcher=fetcher, clock=clock(NOW))

    partitions = cache.load()

    assert [p.name for p in partitions] == ["x86", "gpu_a100"]
    assert fetcher.calls == ["http://catalog"]
    assert state_dir.is_dir()
    assert (state_dir / "partitions.json").read_bytes() == catalog_payload
    assert (state_dir / "partition_last_update").read_text() == str(NOW)
    assert cache.last_refresh() == NOW


def test_fresh_cache_skips_fetch(state_dir: Path, catalog_payload: bytes) -> None:
    seed(state_dir, catalog_payload, str(NOW - 60))
    fetcher = Fetcher(error=FetchFailed("offline"))
    cache = CatalogCache(state_dir, fetcher=fetcher, clock=clock(NOW))

    assert len(cache.load()) == 2
    assert len(cache.load()) == 2
    assert fetcher.calls == []


def test_stale_cache_is_refreshed(state_dir: Path, catalog_payload: bytes) -> None:
    old = json.dumps([{"Name": "old", "CPULimit": 1, "MemoryLimit": 1}]).encode()
    seed(state_dir, old, str(NOW - DAY - 1))
    fetcher = Fetcher(catalog_payload)
    cache = CatalogCache(state_dir, fetcher=fetcher, clock=clock(NOW))

    assert [p.name for p in cache.load()] == ["x86", "gpu_a100"]
    assert len(fetcher.calls) == 1
    assert cache.last_refresh() == NOW


@pytest.mark.parametrize("timestamp", ["", "not-a-number", "12.5x"])
def test_corrupt_timestamp_is_stale(state_dir: Path, catalog_payload: bytes, timestamp: str) -> None:
    seed(state_dir, catalog_payload, timestamp)
    cache = CatalogCache(state_dir, fetcher=Fetcher(catalog_payload), clock=clock(NOW))

    assert cache.last_refresh() is None
    assert cache.is_stale()


def test_missing_timestamp_is_stale(state_dir: Path, catalog_payload: bytes) -> None:
    state_dir.mkdir(parents=True)
    (state_dir / "partitions.json").write_bytes(catalog_payload)
    cache = CatalogCache(state_dir, fetcher=Fetcher(catalog_payload), clock=clock(NOW))

    assert cache.is_stale()


def test_failed_refresh_preserves_cache(state_dir: Path, catalog_payload: bytes) -> None:
    stamp = str(NOW - 2 * DAY)
    seed(state_dir, catalog_payload, stamp)
    cache = CatalogCache(state_dir, fetcher=Fetcher(error=FetchFailed("503")), clock=clock(NOW))

    with pytest.raises(FetchFailed):
        cache.refresh()

    assert (state_dir / "partitions.json").read_bytes() == catalog_payload
    assert (state_dir / "partition_last_update").read_text() == stamp


def test_stale_copy_returned_when_refresh_fails(
    state_dir: Path, catalog_payload: bytes, caplog: pytest.LogCaptureFixture
) -> None:
    stamp = str(NOW - 2 * DAY)
    seed(state_dir, catalog_payload, stamp)
    cache = CatalogCache(state_dir, fetcher=Fetcher(error=FetchFailed("offline")), clock=clock(NOW))

    with caplog.at_level(logging.WARNING):
        partitions = cache.load()

    assert [p.name for p in partitions] == ["x86", "gpu_a100"]
    assert "stale" in caplog.text
    assert (state_dir / "partition_last_update").read_text() == stamp


def test_no_cache_and_fetch_failure_is_fatal(state_dir: Path) -> None:
    cache = CatalogCache(state_dir, fetcher=Fetcher(error=FetchFailed("offline")), clock=clock(NOW))

    with pytest.raises(CatalogUnavailable):
        cache.load()


def test_invalid_payload_is_rejected(state_dir: Path, catalog_payload: bytes) -> None:
    stamp = str(NOW - 2 * DAY)
    seed(state_dir, catalog_payload, stamp)
    bad = json.dumps([{"Name": "broken", "CPULimit": 0, "MemoryLimit": 4}]).encode()
    cache = CatalogCache(state_dir, fetcher=Fetcher(bad), clock=clock(NOW))

    with pytest.raises(FetchFailed):
        cache.refresh()
    assert (state_dir / "partitions.json").read_bytes() == catalog_payload

    truncated = catalog_payload[: len(catalog_payload) // 2]
    cache.fetcher = Fetcher(truncated)
    with pytest.raises(FetchFailed):
        cache.refresh()
    assert (state_dir / "partition_last_update").read_text() == stamp


def test_timestamp_write_failure_restores_data(
    state_dir: Path, catalog_payload: bytes, monkeypatch: pytest.MonkeyPatch
) -> None:
    old = json.dumps([{"Name": "old", "CPULimit": 1, "MemoryLimit": 1}]).encode()
    stamp = str(NOW - 2 * DAY)
    seed(state_dir, old, stamp)
    real_write = catalog_module._atomic_write

    def failing_write(path: Path, data: bytes) -> None:
        if path.name == "partition_last_update":
            raise OSError("disk full")
        real_write(path, data)

    monkeypatch.setattr(catalog_module, "_atomic_write", failing_write)
    cache = CatalogCache(state_dir, fetcher=Fetcher(catalog_payload), clock=clock(NOW))

    with pytest.raises(WriteFailed):
        cache.refresh()

    assert (state_dir / "partitions.json").read_bytes() == old
    assert (state_dir / "partition_last_update").read_text() == stamp
    assert [p.name for p in cache.load()] == ["old"]


def test_get_partition(state_dir: Path, catalog_payload: bytes) -> None:
    cache = CatalogCache(state_dir, fetcher=Fetcher(catalog_payload), clock=clock(NOW))

    assert cache.get("gpu_a100").gpu_tag == "nvidia.com/gpu"
    with pytest.raises(ValidationFailed, match="x86, gpu_a100"):
        cache.get("riscv")


def test_aliasing_partitions_warn(state_dir: Path, caplog: pytest.LogCaptureFixture) -> None:
    payload = json.dumps(
        [
            {"Name": "gpu_a", "CPULimit": 4, "MemoryLimit": 8},
            {"Name": "gpu-a", "CPULimit": 4, "MemoryLimit": 8},
        ]
    ).encode()
    cache = CatalogCache(state_dir, fetcher=Fetcher(payload), clock=clock(NOW))

    with caplog.at_level(logging.WARNING):
        cache.load()

    assert "gpu-a-default-pvc" in caplog.text


class DummyResponse(requests.Response):
    def __init__(self, content: bytes, status_code: int = 200) -> None:
        super().__init__()
        self._content = content
        self.status_code = status_code
        self.reason = "OK" if status_code == 200 else "Service Unavailable"
        self.url = "http://catalog"


def test_fetch_catalog_returns_body(monkeypatch: pytest.MonkeyPatch, catalog_payload: bytes) -> None:
    monkeypatch.setattr(requests, "get", lambda url, timeout: DummyResponse(catalog_payload))
    assert fetch_catalog("http://catalog") == catalog_payload


def test_fetch_catalog_http_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(requests, "get", lambda url, timeout: DummyResponse(b"", 503))
    with pytest.raises(FetchFailed):
        fetch_catalog("http://catalog")


def test_fetch_catalog_connection_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_get(url: str, timeout: int) -> None:
        raise requests.exceptions.ConnectionError("unreachable")

    monkeypatch.setattr(requests, "get", fake_get)
    with pytest.raises(FetchFailed):
        fetch_catalog("http://catalog")


def test_timestamp_exactly_ttl_old_is_stale(state_dir: Path, catalog_payload: bytes) -> None:
    seed(state_dir, catalog_payload, str(NOW - DAY))
    fetcher = Fetcher(catalog_payload)
    cache = CatalogCache(state_dir, fetcher=fetcher, clock=clock(NOW))

    assert cache.is_stale()
    cache.load()
    assert len(fetcher.calls) == 1
    assert cache.last_refresh() == NOW


def test_timestamp_just_inside_ttl_is_fresh(state_dir: Path, catalog_payload: bytes) -> None:
    seed(state_dir, catalog_payload, str(NOW - DAY + 1))
    cache = CatalogCache(state_dir, fetcher=Fetcher(error=FetchFailed("offline")), clock=clock(NOW))

    assert not cache.is_stale()
    assert len(cache.load()) == 2


def test_fresh_timestamp_corrupt_payload_refreshes(state_dir: Path, catalog_payload: bytes) -> None:
    seed(state_dir, b"{not json", str(NOW - 60))
    fetcher = Fetcher(catalog_payload)
    cache = CatalogCache(state_dir, fetcher=fetcher, clock=clock(NOW))

    assert [p.name for p in cache.load()] == ["x86", "gpu_a100"]
    assert len(fetcher.calls) == 1
    assert (state_dir / "partitions.json").read_bytes() == catalog_payload


def test_fresh_timestamp_corrupt_payload_fetch_failure(state_dir: Path) -> None:
    seed(state_dir, b"{not json", str(NOW - 60))
    cache = CatalogCache(state_dir, fetcher=Fetcher(error=FetchFailed("offline")), clock=clock(NOW))

    with pytest.raises(CatalogUnavailable):
        cache.load()


def test_state_dir_is_a_file(tmp_path: Path, catalog_payload: bytes) -> None:
    state_dir = tmp_path / ".hpcgame"
    state_dir.write_text("not a directory")
    cache = CatalogCache(state_dir, fetcher=Fetcher(catalog_payload), clock=clock(NOW))

    with pytest.raises(WriteFailed):
        cache.refresh()
    with pytest.raises(CatalogUnavailable):
        cache.load()
