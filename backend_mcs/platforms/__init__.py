"""Asset platform access: wire models and the PlatformClient capability."""

from backend_mcs.platforms.models import AssetHolding, Platform, TransactionRecord, TransactionType

__all__ = ["AssetHolding", "Platform", "TransactionRecord", "TransactionType"]
