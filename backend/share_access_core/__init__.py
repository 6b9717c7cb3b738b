from .errors import (
    ChallengeLoopError,
    ChallengeStateError,
    CredentialRejectedError,
    MissingCredentialError,
    PolicyUpdateRejectedError,
    ProfileUnavailableError,
    ShareAccessError,
    ShareNetworkError,
)
from .models import (
    ACCESS_TYPES,
    FIELD_NAMES,
    PUBLIC_FIELD_OPTIONS,
    AccessGrant,
    ChallengeRequired,
    Challenging,
    EmergencyPolicy,
    Failed,
    Loading,
    ProfileView,
    SharePolicy,
    Viewing,
)
from .gate import AccessGate
from .challenge import ChallengeResolver, OtpChallenge, OtpRequestResult
from .projector import ProfileProjector, ProjectedProfile
from .session import SharedProfileSession

__all__ = [
    "ACCESS_TYPES",
    "FIELD_NAMES",
    "PUBLIC_FIELD_OPTIONS",
    "AccessGate",
    "AccessGrant",
    "ChallengeLoopError",
    "ChallengeRequired",
    "ChallengeResolver",
    "ChallengeStateError",
    "Challenging",
    "CredentialRejectedError",
    "EmergencyPolicy",
    "Failed",
    "Loading",
    "MissingCredentialError",
    "OtpChallenge",
    "OtpRequestResult",
    "PolicyUpdateRejectedError",
    "ProfileProjector",
    "ProfileUnavailableError",
    "ProfileView",
    "ProjectedProfile",
    "ShareAccessError",
    "ShareNetworkError",
    "SharePolicy",
    "SharedProfileSession",
    "Viewing",
]
