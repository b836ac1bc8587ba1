"""
Monitor runtime.

Configuration, the processing pipeline, the worker service and the
orchestrator that runs them against a live node.
"""

from .config import ConfigError, MonitorConfig, MonitorFileConfig, load_config
from .node import Monitor
from .pipeline import VotePipeline
from .service import MonitorService, shard_of
from .slot_index import MAX_TRACKED_ANCESTORS, MAX_TRACKED_SLOTS, SlotAncestryIndex

__all__ = [
    "MAX_TRACKED_ANCESTORS",
    "MAX_TRACKED_SLOTS",
    "ConfigError",
    "Monitor",
    "MonitorConfig",
    "MonitorFileConfig",
    "MonitorService",
    "SlotAncestryIndex",
    "VotePipeline",
    "load_config",
    "shard_of",
]
