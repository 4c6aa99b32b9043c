"""Snapshot and profile persistence."""

from .models import EVISnapshot, OrgVisibilityProfile, TickTrigger
from .profile_store import ProfileStore, profile_from_dict, profile_to_dict
from .snapshot_store import SnapshotStore, snapshot_from_dict, snapshot_to_dict

__all__ = [
    "EVISnapshot",
    "OrgVisibilityProfile",
    "ProfileStore",
    "SnapshotStore",
    "TickTrigger",
    "profile_from_dict",
    "profile_to_dict",
    "snapshot_from_dict",
    "snapshot_to_dict",
]
