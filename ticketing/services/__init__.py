from .wallet import WalletConnection, WalletService

__all__ = ["WalletConnection", "WalletService"]
