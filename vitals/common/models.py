"""
Core data models for the vitals engine.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vitals.common.numeric import POOLS, safe_number


class Pool(str, Enum):
    """Vital pool enumeration."""
    HEALTH = "health"
    MANA = "mana"
    STAMINA = "stamina"
    ESSENCE = "essence"


class Intent(str, Enum):
    """Primary debit target of a spend."""
    MANA = "mana"
    STAMINA = "stamina"


class EnergyMode(str, Enum):
    CONTINUOUS = "continuous"
    FINITE = "finite"


class CreditMode(str, Enum):
    """How confirmed credits feed the pools."""
    ESSENCE = "essence"
    ALLOCATE = "allocate"
    HEALTH = "health"


class EntryStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


class Classification(str, Enum):
    CORE_INFLOW = "core_inflow"
    CORE_OUTFLOW = "core_outflow"
    OTHER = "other"


class Trend(str, Enum):
    ON_TARGET = "on_target"
    OVERSPENDING = "overspending"
    UNDERSPENDING = "underspending"


class LockReason(str, Enum):
    EXPIRY = "expiry"
    QUEUE_CAP = "queue_cap"


def _enum_key(v: Any) -> Any:
    # Accept "CoreInflow", "core-inflow", "coreinflow" etc.
    if isinstance(v, str):
        s = v.strip().replace("-", "_")
        out = []
        for i, ch in enumerate(s):
            if ch.isupper() and i > 0 and s[i - 1] not in "_" and not s[i - 1].isupper():
                out.append("_")
            out.append(ch.lower())
        key = "".join(out)
        aliases = {"coreinflow": "core_inflow", "coreoutflow": "core_outflow", "ontarget": "on_target"}
        return aliases.get(key, key)
    return v


class PoolAmounts(BaseModel):
    """Per-pool amounts (allocations, totals, liabilities)."""
    model_config = ConfigDict(extra="ignore")

    health: float = 0.0
    mana: float = 0.0
    stamina: float = 0.0
    essence: float = 0.0

    @field_validator("health", "mana", "stamina", "essence", mode="before")
    @classmethod
    def _finite(cls, v):
        return safe_number(v)

    def get(self, pool) -> float:
        return float(getattr(self, Pool(pool).value))

    def total(self) -> float:
        return self.health + self.mana + self.stamina + self.essence

    def add(self, other: "PoolAmounts", sign: float = 1.0) -> "PoolAmounts":
        return PoolAmounts(**{p: self.get(p) + sign * other.get(p) for p in POOLS})

    def as_dict(self) -> Dict[str, float]:
        return {p: self.get(p) for p in POOLS}


class CashflowConfig(BaseModel):
    """Finance settings the engine reads (never writes)."""
    model_config = ConfigDict(extra="ignore")

    mode: EnergyMode = EnergyMode.CONTINUOUS
    credit_mode: CreditMode = CreditMode.ESSENCE
    inflow_monthly: float = 0.0
    outflow_monthly: float = 0.0
    pay_cycle_anchor_ms: Optional[int] = None
    last_anchor_update_ms: Optional[int] = None
    # Regen accrued before tracking started, per pool; never spendable.
    seed_carry: PoolAmounts = Field(default_factory=PoolAmounts)

    @field_validator("inflow_monthly", "outflow_monthly", mode="before")
    @classmethod
    def _finite(cls, v):
        return safe_number(v)

    @field_validator("seed_carry", mode="before")
    @classmethod
    def _carry(cls, v):
        return v if isinstance(v, (dict, PoolAmounts)) else {}

    @field_validator("pay_cycle_anchor_ms", "last_anchor_update_ms", mode="before")
    @classmethod
    def _timestamp(cls, v):
        x = safe_number(v, default=-1.0)
        return int(x) if x > 0 else None

    @field_validator("mode", mode="before")
    @classmethod
    def _mode(cls, v):
        key = _enum_key(v)
        return key if key in {m.value for m in EnergyMode} else EnergyMode.CONTINUOUS

    @field_validator("credit_mode", mode="before")
    @classmethod
    def _credit_mode(cls, v):
        key = _enum_key(v)
        return key if key in {m.value for m in CreditMode} else CreditMode.ESSENCE


class PoolWeights(BaseModel):
    """Raw pool weights; normalized by the engine before use."""
    model_config = ConfigDict(extra="ignore")

    health: float = 0.0
    mana: float = 0.0
    stamina: float = 0.0
    essence: float = 0.0

    @field_validator("health", "mana", "stamina", "essence", mode="before")
    @classmethod
    def _finite(cls, v):
        return max(0.0, safe_number(v))

    def as_dict(self) -> Dict[str, float]:
        return {p: float(getattr(self, p)) for p in POOLS}


class LedgerEntry(BaseModel):
    """Classified transaction as seen by the engine."""
    model_config = ConfigDict(extra="ignore")

    id: str
    amount_minor: float = 0.0
    timestamp_ms: int = 0
    status: EntryStatus = EntryStatus.CONFIRMED
    classification: Classification = Classification.OTHER
    intent_pool: Optional[Intent] = None
    applied_allocation: Optional[PoolAmounts] = None
    expiry_ms: Optional[int] = None
    added_ms: Optional[int] = None
    locked_at_ms: Optional[int] = None
    lock_reason: Optional[LockReason] = None

    @field_validator("amount_minor", mode="before")
    @classmethod
    def _amount(cls, v):
        return safe_number(v)

    @field_validator("timestamp_ms", mode="before")
    @classmethod
    def _ts(cls, v):
        return int(safe_number(v))

    @field_validator("expiry_ms", "added_ms", "locked_at_ms", mode="before")
    @classmethod
    def _opt_ts(cls, v):
        if v is None:
            return None
        return int(safe_number(v))

    @field_validator("status", "classification", "lock_reason", mode="before")
    @classmethod
    def _enums(cls, v):
        return _enum_key(v)

    @field_validator("intent_pool", mode="before")
    @classmethod
    def _intent(cls, v):
        key = _enum_key(v)
        return key if key in {i.value for i in Intent} else None

    @property
    def is_core(self) -> bool:
        return self.classification in (Classification.CORE_INFLOW, Classification.CORE_OUTFLOW)

    @property
    def queue_ms(self) -> int:
        return self.added_ms if self.added_ms is not None else self.timestamp_ms

    def intent(self) -> Intent:
        return self.intent_pool or Intent.STAMINA


class UsageBucket(BaseModel):
    spent: float = 0.0
    credited: float = 0.0


class PoolUsage(BaseModel):
    """Aggregated usage of one pool over the three scan buckets."""
    since_anchor: UsageBucket = Field(default_factory=UsageBucket)
    last_7_days: UsageBucket = Field(default_factory=UsageBucket)
    pending_preview: UsageBucket = Field(default_factory=UsageBucket)


class PoolSnapshot(BaseModel):
    pool: Pool
    cap_minor: float = 0.0
    regen_baseline_per_day: float = 0.0
    regen_effective_per_day: float = 0.0
    remainder_minor: float = 0.0
    banked_cycles: int = 0
    truth_total_minor: float = 0.0
    spent_since_anchor: float = 0.0
    credit_since_anchor: float = 0.0
    pending_debit: float = 0.0
    pending_credit: float = 0.0
    trend: Trend = Trend.ON_TARGET


class GatewaySnapshot(BaseModel):
    """Authoritative, wholesale-recomputed state of all pools."""
    pools: Dict[Pool, PoolSnapshot]
    net_daily_minor: float = 0.0
    updated_at_ms: int = 0
    mode: EnergyMode = EnergyMode.CONTINUOUS
    credit_mode: CreditMode = CreditMode.ESSENCE
    pay_cycle_anchor_ms: Optional[int] = None
    last_anchor_update_ms: Optional[int] = None
    configured: bool = True

    def pool(self, pool) -> PoolSnapshot:
        return self.pools[Pool(pool)]

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class GhostProjection(BaseModel):
    """Transient preview of a pool once pending liabilities settle."""
    remainder_before: float = 0.0
    remainder_after: float = 0.0
    banked_before: int = 0
    banked_after: int = 0
    overlay_start_pct: float = 0.0
    overlay_width_pct: float = 0.0

    @property
    def has_overlay(self) -> bool:
        return self.overlay_width_pct > 0.0


__all__ = [
    "Pool",
    "Intent",
    "EnergyMode",
    "CreditMode",
    "EntryStatus",
    "Classification",
    "Trend",
    "LockReason",
    "PoolAmounts",
    "CashflowConfig",
    "PoolWeights",
    "LedgerEntry",
    "UsageBucket",
    "PoolUsage",
    "PoolSnapshot",
    "GatewaySnapshot",
    "GhostProjection",
]
