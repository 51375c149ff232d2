"""
Gateway snapshot persistence: one whole document, replaced atomically.
"""

import logging
from typing import Optional

import orjson
from pydantic import ValidationError

from vitals.common.artifacts import read_json, write_json_atomic
from vitals.common.errors import raise_one_line
from vitals.common.invariants import assert_payload_finite
from vitals.common.models import GatewaySnapshot
from vitals.engine.gateway import snapshot_payload


logger = logging.getLogger(__name__)


class SnapshotStore:
    def write(self, snapshot: GatewaySnapshot) -> None:
        raise NotImplementedError

    def read(self) -> Optional[GatewaySnapshot]:
        raise NotImplementedError


class InMemorySnapshotStore(SnapshotStore):
    def __init__(self, round_dp: int = 6):
        self.round_dp = round_dp
        self.payload: Optional[dict] = None
        self.writes = 0

    def write(self, snapshot: GatewaySnapshot) -> None:
        payload = snapshot_payload(snapshot, self.round_dp)
        assert_payload_finite(payload)
        self.payload = payload
        self.writes += 1

    def read(self) -> Optional[GatewaySnapshot]:
        if self.payload is None:
            return None
        return GatewaySnapshot.model_validate(self.payload)


class FileSnapshotStore(SnapshotStore):
    """Snapshot JSON file; a failed write leaves the previous file intact."""

    def __init__(self, path: str, round_dp: int = 6):
        self.path = str(path)
        self.round_dp = round_dp

    def write(self, snapshot: GatewaySnapshot) -> None:
        payload = snapshot_payload(snapshot, self.round_dp)
        assert_payload_finite(payload)
        try:
            write_json_atomic(self.path, payload)
        except OSError as e:
            raise_one_line("E_SNAPSHOT_WRITE", f"cannot write snapshot {self.path}: {e}")
        logger.debug("snapshot written path=%s", self.path)

    def read(self) -> Optional[GatewaySnapshot]:
        try:
            data = read_json(self.path)
        except (OSError, orjson.JSONDecodeError) as e:
            logger.warning("Snapshot unreadable path=%s err=%s", self.path, type(e).__name__)
            return None
        if data is None:
            return None
        try:
            return GatewaySnapshot.model_validate(data)
        except ValidationError as e:
            logger.warning("Snapshot invalid path=%s errors=%d", self.path, e.error_count())
            return None
