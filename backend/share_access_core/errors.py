from __future__ import annotations


class ShareAccessError(Exception):
    """Base class for every failure the sharing flow surfaces to a screen."""

    retryable = False
    default_message = "Failed to load profile"

    def __init__(self, message: str | None = None) -> None:
        self.message = (message or "").strip() or self.default_message
        super().__init__(self.message)


class ProfileUnavailableError(ShareAccessError):
    """Handle does not resolve to a shareable profile (not found, not public, expired)."""


class ShareNetworkError(ShareAccessError):
    retryable = True
    default_message = "Network error. Check your connection and try again."


class CredentialRejectedError(ShareAccessError):
    retryable = True
    default_message = "Verification failed"

    def __init__(self, message: str | None = None, *, expired: bool = False) -> None:
        super().__init__(message)
        self.expired = expired


class MissingCredentialError(ValueError):
    pass


class ChallengeStateError(Exception):
    pass


class ChallengeLoopError(ShareAccessError):
    default_message = "Access could not be confirmed for this profile."


class PolicyUpdateRejectedError(ShareAccessError):
    retryable = True
    default_message = "Failed to update privacy settings"
