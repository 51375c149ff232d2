"""
Common test fixtures for the vitals engine tests.

Provides:
- mk_cfg(): AppConfig with defaults
- mk_ctx(mk_cfg): VitalsContext over in-memory stores with a private Metrics registry
- cashflow / weights: a configured account

IMPORTANT: Prometheus registry is auto-cleared before each test by conftest.py
at project root.
"""

# --- BEGIN: Ensure repo root in sys.path ---
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
root_str = str(ROOT)
if sys.path[:1] != [root_str]:
    sys.path[:] = [root_str] + [p for p in sys.path if p != root_str]
# --- END: Ensure repo root in sys.path ---

import pytest
from prometheus_client import CollectorRegistry

from vitals.common.config import AppConfig
from vitals.common.di import VitalsContext
from vitals.common.models import CashflowConfig, PoolWeights
from vitals.metrics.exporter import Metrics
from vitals.runtime.pending_feed import PendingFeed
from vitals.storage.ledger import InMemoryLedger
from vitals.storage.settings import StaticSettingsSource
from vitals.storage.snapshot_store import InMemorySnapshotStore

from tests.helpers.factories import ANCHOR_MS, NOW_MS
from tests.helpers.fake_clock import FakeClock


def pytest_configure(config):
    """Register custom markers to avoid 'unknown marker' warnings."""
    config.addinivalue_line("markers", "integration: Integration tests with full stack")
    config.addinivalue_line("markers", "asyncio: run test in an event loop")


@pytest.fixture
def anchor_ms():
    return ANCHOR_MS


@pytest.fixture
def now_ms():
    return NOW_MS


@pytest.fixture
def cashflow():
    return CashflowConfig(
        inflow_monthly=3044.0,
        outflow_monthly=0.0,
        pay_cycle_anchor_ms=ANCHOR_MS,
    )


@pytest.fixture
def weights():
    return PoolWeights(health=0.1, mana=0.3, stamina=0.5, essence=0.1)


@pytest.fixture
def mk_cfg():
    return AppConfig()


@pytest.fixture
def fake_clock(now_ms):
    return FakeClock(now_ms / 1000.0)


@pytest.fixture
def mk_ctx(mk_cfg, cashflow, weights):
    return VitalsContext(
        cfg=mk_cfg,
        settings=StaticSettingsSource(cashflow, weights),
        ledger=InMemoryLedger(),
        snapshots=InMemorySnapshotStore(),
        pending_feed=PendingFeed(),
        metrics=Metrics(CollectorRegistry()),
    )
