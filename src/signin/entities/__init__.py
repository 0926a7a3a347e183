"""Entities module with hybrid entity-centric structure.

Each entity has its own package containing:
- entity.py: Domain model
- table.py: Database persistence model
- repository.py: Data access layer
"""

from .core.account import LinkedAccount, LinkedAccountRepository, LinkedAccountTable
from .core.user import User, UserRepository, UserTable

__all__ = [
    "User",
    "UserTable",
    "UserRepository",
    "LinkedAccount",
    "LinkedAccountTable",
    "LinkedAccountRepository",
]
