"""
Configuration management for the vitals engine.

Adds:
- AppConfig with versioning and strict validation
- Unknown-key detection (fail-fast)
- Invariants validation
- Environment overrides (VITALS_<SECTION>__<KEY>)
- Sanitized hashing helper
"""

import os
import logging
import hashlib
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field, asdict, fields, is_dataclass

import yaml
import orjson
from dotenv import load_dotenv

from vitals.common.invariants import assert_finite, assert_range

logger = logging.getLogger(__name__)

MS_PER_DAY = 86_400_000
AVG_MONTH_DAYS = 30.44


@dataclass
class EngineConfig:
    """Recompute pipeline constants."""
    days_per_month: float = AVG_MONTH_DAYS   # monthly -> daily conversion
    cycle_length_days: float = AVG_MONTH_DAYS  # cap basis
    trailing_window_days: float = 7.0
    round_dp: int = 6
    anchor_carry_over: bool = True  # subtract the settings seed_carry from truth


@dataclass
class NudgeConfig:
    """Trend bands and regen adjustment magnitudes."""
    over_threshold: float = 1.15
    under_threshold: float = 0.80
    over_factor: float = 0.95
    under_factor: float = 1.05


@dataclass
class WeightsConfig:
    """Fallback split used when configured weights sum to ~0."""
    health: float = 0.1
    mana: float = 0.3
    stamina: float = 0.5
    essence: float = 0.1
    sum_eps: float = 1e-9

    def as_dict(self) -> Dict[str, float]:
        return {"health": self.health, "mana": self.mana, "stamina": self.stamina, "essence": self.essence}


@dataclass
class RuntimeConfig:
    """Animation loop settings."""
    frame_interval_ms: float = 1000.0 / 30.0
    time_multiplier: float = 1.0
    ghost_epsilon: float = 1e-6
    queue_cap: int = 50
    recompute_interval_sec: float = 60.0
    log_rate_limit_sec: float = 60.0


@dataclass
class StorageConfig:
    settings_path: str = "data/settings.json"
    ledger_path: str = "data/ledger.jsonl"
    snapshot_path: str = "data/gateway_snapshot.json"


@dataclass
class MonitoringConfig:
    metrics_port: int = 0  # 0 disables the HTTP exporter
    log_level: str = "INFO"


@dataclass
class AppConfig:
    """Versioned, strictly validated application config."""
    config_version: int = 1
    engine: EngineConfig = field(default_factory=EngineConfig)
    nudge: NudgeConfig = field(default_factory=NudgeConfig)
    weights: WeightsConfig = field(default_factory=WeightsConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def to_sanitized(self) -> Dict[str, Any]:
        return asdict(self)


SECTIONS = {
    "engine": EngineConfig,
    "nudge": NudgeConfig,
    "weights": WeightsConfig,
    "runtime": RuntimeConfig,
    "storage": StorageConfig,
    "monitoring": MonitoringConfig,
}


class ConfigLoader:
    """Configuration loader with YAML and environment variable support."""

    def __init__(self, config_path: Optional[str] = None, env_prefix: str = "VITALS_"):
        """Initialize the config loader."""
        self.config_path = config_path or "config.yaml"
        self.env_prefix = env_prefix
        self._app_config: Optional[AppConfig] = None

    def load(self) -> AppConfig:
        """Load configuration from YAML and environment variables as AppConfig."""
        if self._app_config is not None:
            return self._app_config

        load_dotenv()

        yaml_config = self._load_yaml()
        _validate_unknown_keys(yaml_config)
        yaml_config = self._apply_env_overrides(deepcopy(yaml_config))

        app_cfg = AppConfig(
            config_version=int(yaml_config.get("config_version", 1)),
            **{name: cls(**(yaml_config.get(name) or {})) for name, cls in SECTIONS.items()},
        )
        validate_invariants(app_cfg)

        self._app_config = app_cfg
        return app_cfg

    def _load_yaml(self) -> Dict[str, Any]:
        """Load YAML configuration file."""
        path = Path(self.config_path)
        if not path.exists():
            logger.info("Config file not found, using defaults path=%s", self.config_path)
            return {}
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config root must be a mapping: {self.config_path}")
        return data

    def _apply_env_overrides(self, cfg: Dict[str, Any]) -> Dict[str, Any]:
        """Apply VITALS_<SECTION>__<KEY>=value overrides, cast to the field type."""
        for env_key, raw in os.environ.items():
            if not env_key.startswith(self.env_prefix) or "__" not in env_key:
                continue
            section, _, key = env_key[len(self.env_prefix):].lower().partition("__")
            dc_cls = SECTIONS.get(section)
            if dc_cls is None:
                continue
            types = {f.name: f.type for f in fields(dc_cls)}
            if key not in types:
                logger.warning("Ignoring unknown env override %s", env_key)
                continue
            cfg.setdefault(section, {})
            cfg[section][key] = _cast_env(raw, types[key])
            logger.debug("env override applied key=%s.%s", section, key)
        return cfg


def _cast_env(raw: str, ftype: Any) -> Any:
    name = ftype if isinstance(ftype, str) else getattr(ftype, "__name__", str(ftype))
    if name == "int":
        return int(float(raw))
    if name == "float":
        return float(raw)
    if name == "bool":
        return raw.strip().lower() in ("1", "true", "yes", "on")
    return raw


def validate_invariants(cfg: AppConfig) -> None:
    """Validate config invariants; raise ValueError on violation."""
    e = cfg.engine
    n = cfg.nudge
    w = cfg.weights
    r = cfg.runtime
    assert_finite(e.days_per_month, e.cycle_length_days, e.trailing_window_days)
    if not (e.days_per_month > 0):
        raise ValueError("engine.days_per_month must be > 0")
    if not (e.cycle_length_days > 0):
        raise ValueError("engine.cycle_length_days must be > 0")
    if not (e.trailing_window_days > 0):
        raise ValueError("engine.trailing_window_days must be > 0")
    assert_finite(n.over_threshold, n.under_threshold, n.over_factor, n.under_factor)
    if not (n.under_threshold <= 1.0 <= n.over_threshold):
        raise ValueError("nudge.under_threshold <= 1 <= nudge.over_threshold required")
    assert_range(n.over_factor, 0.0, 1.0)
    assert_range(n.under_factor, 1.0, 2.0)
    for name in ("health", "mana", "stamina", "essence"):
        assert_range(getattr(w, name), 0.0, 1.0)
    if sum(w.as_dict().values()) <= 0:
        raise ValueError("weights default split must have a positive sum")
    if not (r.frame_interval_ms > 0):
        raise ValueError("runtime.frame_interval_ms must be > 0")
    if not (r.time_multiplier > 0):
        raise ValueError("runtime.time_multiplier must be > 0")
    if not (r.queue_cap >= 0):
        raise ValueError("runtime.queue_cap must be >= 0")


def _validate_unknown_keys_obj(dc_cls: Any, data: Any, path: List[str]) -> None:
    """Recursively validate that data only contains known keys for dataclass fields."""
    if not is_dataclass(dc_cls) or not isinstance(data, dict):
        return
    known = {f.name: f for f in fields(dc_cls)}
    for key, val in data.items():
        if key not in known:
            raise ValueError("Unknown config key: " + ".".join(path + [key]))
        sub_cls = SECTIONS.get(key) if dc_cls is AppConfig else None
        if sub_cls is not None:
            _validate_unknown_keys_obj(sub_cls, val, path + [key])


def _validate_unknown_keys(yaml_dict: Dict[str, Any]) -> None:
    _validate_unknown_keys_obj(AppConfig, yaml_dict, [])


def cfg_hash_sanitized(cfg: AppConfig) -> str:
    """Compute sha256 hash of sanitized config."""
    payload = orjson.dumps(cfg.to_sanitized(), option=orjson.OPT_SORT_KEYS)
    return hashlib.sha256(payload).hexdigest()
