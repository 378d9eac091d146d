"""
File feature: file records, filesystem operations and reconciliation.
"""

from .ops import FileOpsCoordinator
from .reconcile import FileReconciler
from .records import FileRecord, FileRecordStore

__all__ = ["FileRecord", "FileRecordStore", "FileOpsCoordinator", "FileReconciler"]
