from .configurator import EmergencyConfigurator, ProfileConfigurator
from .expiry import EXPIRY_PRESETS, expiry_preset_for, resolve_expiry
from .optimistic import OptimisticUpdater, UpdateResult
from .share_link import build_share_url, share_username

__all__ = [
    "EXPIRY_PRESETS",
    "EmergencyConfigurator",
    "OptimisticUpdater",
    "ProfileConfigurator",
    "UpdateResult",
    "build_share_url",
    "expiry_preset_for",
    "resolve_expiry",
    "share_username",
]
