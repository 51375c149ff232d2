"""
Vitals - resource-truth engine for Health / Mana / Stamina / Essence pools
"""

__version__ = "1.0.0"

from .common.models import (
    CashflowConfig,
    GatewaySnapshot,
    GhostProjection,
    LedgerEntry,
    Pool,
    PoolAmounts,
    PoolWeights,
)
from .engine.aggregator import aggregate
from .engine.allocation import allocate
from .engine.gateway import recompute
from .engine.ghost import project
from .runtime.loop import RuntimeLoopContext
