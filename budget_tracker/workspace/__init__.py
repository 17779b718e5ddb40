"""Offline-first workspace: agencies, projects, roles and sync."""

from budget_tracker.workspace.authorization import AppSession, AuthorizationStateMachine, Role
from budget_tracker.workspace.local_cache import CacheKeys, MemoryCache, create_local_cache
from budget_tracker.workspace.repository import AgencyRepository
from budget_tracker.workspace.sync import LoadSource, SyncCoordinator
from budget_tracker.workspace.workspace import Workspace

__all__ = [
    "AgencyRepository",
    "AppSession",
    "AuthorizationStateMachine",
    "CacheKeys",
    "LoadSource",
    "MemoryCache",
    "Role",
    "SyncCoordinator",
    "Workspace",
    "create_local_cache",
]
