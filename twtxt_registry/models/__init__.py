from twtxt_registry.models.account import Account
from twtxt_registry.models.entry import Entry, Visibility
from twtxt_registry.models import search  # noqa: F401  registers the search index DDL hooks

__all__ = ["Account", "Entry", "Visibility"]
