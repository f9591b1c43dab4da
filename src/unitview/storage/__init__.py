"""Persistence backends (local layout files, remote assignment snapshots)."""

from unitview.storage.layouts import JsonFileStorage, LayoutStore, StorageError
from unitview.storage.remote import AssignmentSnapshot, SnapshotClient

__all__ = ["AssignmentSnapshot", "JsonFileStorage", "LayoutStore", "SnapshotClient", "StorageError"]
