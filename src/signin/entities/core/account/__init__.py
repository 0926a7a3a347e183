"""Linked account entity module.

This module contains all LinkedAccount-related classes organized by responsibility:
- LinkedAccount: Domain entity linking provider accounts to internal users
- LinkedAccountTable: Database persistence model
- LinkedAccountRepository: Data access layer
"""

from .entity import LinkedAccount
from .repository import LinkedAccountRepository
from .table import LinkedAccountTable

__all__ = ["LinkedAccount", "LinkedAccountTable", "LinkedAccountRepository"]
