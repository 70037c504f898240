"""Storage module."""

from .storage import IIdentityProvider, IMessageStore, IStorage, Storage

__all__ = ["IIdentityProvider", "IMessageStore", "IStorage", "Storage"]
