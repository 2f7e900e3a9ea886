"""
Repositories - queries and transactional writes, kept out of the models
"""
from twtxt_registry.repositories.account_repository import AccountCandidate, AccountRepository
from twtxt_registry.repositories.entry_repository import EntryRepository
from twtxt_registry.repositories.pagination import PageWindow

__all__ = ["AccountCandidate", "AccountRepository", "EntryRepository", "PageWindow"]
