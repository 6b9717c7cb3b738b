from .config import ShareClientSettings, bootstrap_local_env
from .credentials import AuthSession, CredentialStore, InMemoryCredentialStore
from .http import ClientHolder, build_private_client, build_public_client
from .observability import log_event
from .profile import ProfileClient
from .public_profile import PublicApiResponse, PublicProfileClient

__all__ = [
    "AuthSession",
    "ClientHolder",
    "CredentialStore",
    "InMemoryCredentialStore",
    "ProfileClient",
    "PublicApiResponse",
    "PublicProfileClient",
    "ShareClientSettings",
    "bootstrap_local_env",
    "build_private_client",
    "build_public_client",
    "log_event",
]
