from .services import LifecycleManagerDep, WalletServiceDep, get_lifecycle_manager, get_wallet_service

__all__ = ["LifecycleManagerDep", "WalletServiceDep", "get_lifecycle_manager", "get_wallet_service"]
