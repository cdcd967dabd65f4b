"""
Active sender module - merges family updates and pushes snapshots to remote endpoints
"""

from .merger import SnapshotMerger
from .dispatcher import ActiveDispatcher, EndpointWorker, MIN_COOLDOWN_SECONDS, REQUEST_TIMEOUT_SECONDS

__all__ = ['SnapshotMerger', 'ActiveDispatcher', 'EndpointWorker', 'MIN_COOLDOWN_SECONDS', 'REQUEST_TIMEOUT_SECONDS']
