"""Filesystem adapters."""
from .local import FilesystemPort, FsEntry, LocalFilesystem

__all__ = ["FilesystemPort", "FsEntry", "LocalFilesystem"]
