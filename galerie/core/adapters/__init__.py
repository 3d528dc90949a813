"""
Provider Adapters

One adapter per external identity/wallet SDK, all exposing the same
capability set (initialize, connect, disconnect, get_public_key, get_status,
subscribe):

- PopupIdentityAdapter: popup login, key derived from the provider secret
- DirectWalletAdapter: wallet extension or manual account entry
- LegacyPopupAdapter: older popup-login path with a transient secret handoff
"""

from .base import InvalidTransitionError, ProviderAdapter
from .direct_wallet import MANUAL_METHOD, DirectWalletAdapter
from .factory import build_adapters
from .legacy_popup import LEGACY_METHOD, LegacyPopupAdapter
from .popup_identity import WEB3AUTH_METHOD, EnvelopeSigner, PopupIdentityAdapter, PopupLoginFlow

__all__ = [
    "ProviderAdapter",
    "InvalidTransitionError",
    "PopupIdentityAdapter",
    "PopupLoginFlow",
    "DirectWalletAdapter",
    "LegacyPopupAdapter",
    "EnvelopeSigner",
    "build_adapters",
    "MANUAL_METHOD",
    "LEGACY_METHOD",
    "WEB3AUTH_METHOD",
]
