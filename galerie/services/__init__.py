"""Service layer helpers"""

from .payment_bridge import PaymentBridge, parse_amount
from .unified_wallet import UnifiedWallet
from .wallet_backup import WalletBackupService

__all__ = [
    "PaymentBridge",
    "UnifiedWallet",
    "WalletBackupService",
    "parse_amount",
]
