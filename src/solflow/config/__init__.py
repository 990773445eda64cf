from .identities import SigningIdentities, load_keypair, save_keypair
from .settings import (
    BundleSettings,
    LoggingSettings,
    OfflineSettings,
    OverrideRecord,
    RpcSettings,
    Settings,
    load_settings,
)

__all__ = [
    "SigningIdentities",
    "load_keypair",
    "save_keypair",
    "BundleSettings",
    "LoggingSettings",
    "OfflineSettings",
    "OverrideRecord",
    "RpcSettings",
    "Settings",
    "load_settings",
]
