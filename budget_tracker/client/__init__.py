"""Client-side adapters for the backend: auth session holder and remote store."""

from budget_tracker.client.auth_client import AuthClient, AuthSession, DirectAuthClient, HttpAuthClient
from budget_tracker.client.remote_store import DirectRemoteStore, HttpRemoteStore, RemoteStore

__all__ = [
    "AuthClient",
    "AuthSession",
    "DirectAuthClient",
    "HttpAuthClient",
    "RemoteStore",
    "DirectRemoteStore",
    "HttpRemoteStore",
]
