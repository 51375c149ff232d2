"""
Simple Dependency Injection context.
"""

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .config import AppConfig

if TYPE_CHECKING:
    from vitals.metrics.exporter import Metrics
    from vitals.runtime.pending_feed import PendingFeed
    from vitals.storage.ledger import LedgerSource
    from vitals.storage.settings import SettingsSource
    from vitals.storage.snapshot_store import SnapshotStore


@dataclass
class VitalsContext:
    cfg: AppConfig

    # Persistence boundary
    settings: Optional['SettingsSource'] = None
    ledger: Optional['LedgerSource'] = None
    snapshots: Optional['SnapshotStore'] = None

    # Live pending set for the runtime loop
    pending_feed: Optional['PendingFeed'] = None

    # Metrics and monitoring
    metrics: Optional['Metrics'] = None
