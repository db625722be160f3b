"""Locally cached partition catalog."""

import json
import logging
import os
import tempfile
import time
from pathlib import Path

import requests
from pydantic import ValidationError

from . import constants
from .errors import CatalogUnavailable, FetchFailed, ValidationFailed, WriteFailed
from .models import Partition
from .volumes import default_claim_name

logger = logging.getLogger(__name__)


def fetch_catalog(url, timeout=30):
    """Fetch the raw partition catalog payload."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.HTTPError as http_err:
        logger.error(f"HTTP error fetching partition catalog: {http_err}")
        raise FetchFailed(f"failed to get partition information: {http_err}") from http_err
    except requests.exceptions.RequestException as err:
        logger.error(f"Error fetching partition catalog: {err}")
        raise FetchFailed(f"failed to get partition information: {err}") from err
    return response.content


def parse_catalog(payload):
    """Parse a catalog payload into partitions."""
    data = json.loads(payload)
    if not isinstance(data, list):
        raise ValueError("partition catalog must be a JSON array")
    partitions = [Partition.model_validate(item) for item in data]
    _warn_on_claim_aliases(partitions)
    return partitions


def _warn_on_claim_aliases(partitions):
    # "gpu_a" and "gpu-a" both map to "gpu-a-default-pvc".
    seen = {}
    for partition in partitions:
        claim = default_claim_name(partition.name)
        other = seen.setdefault(claim, partition.name)
        if other != partition.name:
            logger.warning(
                f"Partitions '{other}' and '{partition.name}' share default volume '{claim}'"
            )


def _atomic_write(path, data):
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


class CatalogCache:
    """Partition catalog persisted under ``state_dir`` with a 24h time-to-live.

    The cache keeps two files: the last fetched payload and a plain integer
    epoch timestamp of the last successful refresh. Both are replaced whole,
    and the in-memory copy only changes once both files are written.
    """

    def __init__(self, state_dir=None, url=None, fetcher=None, clock=time.time,
                 ttl=constants.CATALOG_TTL_SECONDS):
        self.state_dir = Path(state_dir) if state_dir else constants.HPCGAME_HOME
        self.url = url or constants.PARTITIONS_URL
        self.fetcher = fetcher or fetch_catalog
        self.clock = clock
        self.ttl = ttl
        self._partitions = None

    @property
    def data_path(self):
        return self.state_dir / constants.PARTITIONS_FILE

    @property
    def timestamp_path(self):
        return self.state_dir / constants.LAST_UPDATE_FILE

    def _ensure_dir(self):
        if self.state_dir.is_dir():
            return
        try:
            self.state_dir.mkdir(parents=True, mode=0o700, exist_ok=True)
        except OSError as e:
            raise WriteFailed(f"failed to create directory {self.state_dir}: {e}") from e
        logger.info(f"Created HPCGame directory: {self.state_dir}")

    def last_refresh(self):
        """Return the persisted refresh timestamp, or None when missing or corrupt."""
        try:
            return int(self.timestamp_path.read_text().strip())
        except (OSError, ValueError):
            return None

    def is_stale(self):
        last = self.last_refresh()
        if last is None or not self.data_path.exists():
            return True
        return last + self.ttl <= int(self.clock())

    def refresh(self):
        """Fetch the catalog and replace the persisted and in-memory copies."""
        self._ensure_dir()
        payload = self.fetcher(self.url)
        try:
            partitions = parse_catalog(payload)
        except (ValueError, ValidationError) as e:
            raise FetchFailed(f"failed to parse partition information: {e}") from e

        timestamp = str(int(self.clock())).encode()
        try:
            previous = self.data_path.read_bytes()
        except FileNotFoundError:
            previous = None
        except OSError as e:
            raise WriteFailed(f"failed to read partition information: {e}") from e

        try:
            _atomic_write(self.data_path, payload)
        except OSError as e:
            raise WriteFailed(f"failed to save partition information: {e}") from e
        try:
            _atomic_write(self.timestamp_path, timestamp)
        except OSError as e:
            self._restore(previous)
            raise WriteFailed(f"failed to update partition timestamp: {e}") from e

        self._partitions = partitions
        logger.info(f"Partition information updated: {self.data_path}")
        return list(partitions)

    def _restore(self, previous):
        try:
            if previous is None:
                self.data_path.unlink()
            else:
                _atomic_write(self.data_path, previous)
        except OSError as e:
            logger.error(f"Could not restore previous partition information: {e}")

    def _read_local(self):
        try:
            return parse_catalog(self.data_path.read_bytes())
        except (OSError, ValueError, ValidationError) as e:
            logger.debug(f"Local partition information unusable: {e}")
            return None

    def load(self):
        """Return the partition list, refreshing first when the cache is stale."""
        stale = self.is_stale()
        if self._partitions is not None and not stale:
            return list(self._partitions)

        if stale:
            try:
                return self.refresh()
            except (FetchFailed, WriteFailed) as e:
                partitions = self._read_local()
                if partitions is None:
                    raise CatalogUnavailable(
                        f"no partition information available: {e}"
                    ) from e
                logger.warning(f"Using stale partition information: {e}")
                self._partitions = partitions
                return list(partitions)

        partitions = self._read_local()
        if partitions is None:
            # Timestamp is fresh but the payload is gone or corrupt.
            try:
                return self.refresh()
            except (FetchFailed, WriteFailed) as e:
                raise CatalogUnavailable(f"no partition information available: {e}") from e
        self._partitions = partitions
        return list(partitions)

    def get(self, name):
        """Return the partition called ``name``."""
        partitions = self.load()
        for partition in partitions:
            if partition.name == name:
                return partition
        available = ", ".join(p.name for p in partitions)
        raise ValidationFailed(f"Invalid partition name: {name} (available: {available})")
