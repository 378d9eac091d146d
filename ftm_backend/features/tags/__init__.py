"""
Tag feature: tag records and file-tag links.
"""

from .linker import FileTagLinker
from .models import Tag
from .store import TagStore

__all__ = ["Tag", "TagStore", "FileTagLinker"]
