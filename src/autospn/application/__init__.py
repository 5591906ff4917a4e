"""
Application layer - reconciliation use case.
"""

from .reconciler import DirectoryService, SpnReconciler, TopologySource

__all__ = ["DirectoryService", "SpnReconciler", "TopologySource"]
