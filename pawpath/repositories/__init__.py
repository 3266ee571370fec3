"""PawPath Repositories Package"""

from pawpath.repositories.base import LockKeys, Store, UnitOfWork
from pawpath.repositories.memory import InMemoryStore
from pawpath.repositories.mongo import MongoStore

__all__ = [
    "LockKeys",
    "Store",
    "UnitOfWork",
    "InMemoryStore",
    "MongoStore",
]
