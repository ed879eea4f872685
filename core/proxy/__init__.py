# core/proxy/__init__.py
"""
Adaptive image fetch engine.

Persona catalog, single-attempt executor, success memo and the orchestrator
that walks them for each proxied image.
"""

from core.proxy.cache_manager import SuccessMemo, MemoEntry
from core.proxy.executor import StrategyExecutor, Success, Rejected, Failed
from core.proxy.orchestrator import FetchOrchestrator
from core.proxy.target import TargetResource, InvalidRequest, ProtectionPolicy

__all__ = [
    "SuccessMemo",
    "MemoEntry",
    "StrategyExecutor",
    "Success",
    "Rejected",
    "Failed",
    "FetchOrchestrator",
    "TargetResource",
    "InvalidRequest",
    "ProtectionPolicy",
]
