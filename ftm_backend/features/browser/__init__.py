"""
Browser feature helpers.
"""

from .service import DirectoryEntry, DirectoryInfo, DirectoryLister

__all__ = ["DirectoryLister", "DirectoryInfo", "DirectoryEntry"]
