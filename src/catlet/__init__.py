"""
Catlet Spawn - declarative lifecycle management for eryph catlets.

Translates catlet declarations into calls against the eryph compute API,
tracks the resulting long-running operations and reconciles the remote
state with what the caller expects.
"""

__version__ = "1.0.0"
__author__ = "Catlet Spawn Development Team"

# Re-export key components for easier access
from catlet.models.catlet import CatletDefinition, CatletSpec
from catlet.models.config import SpawnConfig
from catlet.models.status import ReconciledState
from catlet.lifecycle.orchestrator import Action, LifecycleOrchestrator

__all__ = [
    "CatletDefinition",
    "CatletSpec",
    "SpawnConfig",
    "ReconciledState",
    "Action",
    "LifecycleOrchestrator",
]
