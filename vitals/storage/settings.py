"""
Settings sources: cashflow config and pool weights.

load() never raises; missing or unreadable pieces come back as None and
the recompute degrades to an unconfigured snapshot.
"""

import logging
from typing import Any, Optional, Tuple

import orjson
from pydantic import ValidationError

from vitals.common.artifacts import read_json, write_json_atomic
from vitals.common.models import CashflowConfig, PoolWeights


logger = logging.getLogger(__name__)

Settings = Tuple[Optional[CashflowConfig], Optional[PoolWeights]]


class SettingsSource:
    def load(self) -> Settings:
        raise NotImplementedError


class StaticSettingsSource(SettingsSource):
    def __init__(self, config: Optional[CashflowConfig] = None, weights: Optional[PoolWeights] = None):
        self.config = config
        self.weights = weights

    def load(self) -> Settings:
        return self.config, self.weights


def _parse(model, data: Any, what: str):
    if not isinstance(data, dict):
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning("Invalid %s settings ignored: %d error(s)", what, e.error_count())
        return None


class FileSettingsSource(SettingsSource):
    """JSON document {"cashflow": {...}, "weights": {...}}."""

    def __init__(self, path: str):
        self.path = str(path)

    def load(self) -> Settings:
        try:
            doc = read_json(self.path)
        except (OSError, orjson.JSONDecodeError) as e:
            logger.warning("Settings unreadable path=%s err=%s", self.path, type(e).__name__)
            return None, None
        if not isinstance(doc, dict):
            if doc is not None:
                logger.warning("Settings root must be an object path=%s", self.path)
            return None, None
        return _parse(CashflowConfig, doc.get("cashflow"), "cashflow"), _parse(PoolWeights, doc.get("weights"), "weights")

    def save(self, config: Optional[CashflowConfig], weights: Optional[PoolWeights]) -> None:
        doc = {}
        if config is not None:
            doc["cashflow"] = config.model_dump(mode="json")
        if weights is not None:
            doc["weights"] = weights.model_dump(mode="json")
        write_json_atomic(self.path, doc)
