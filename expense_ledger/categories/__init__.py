"""Category registry package."""

from expense_ledger.categories.registry import CategoryRegistry, categories_key

__all__ = ["CategoryRegistry", "categories_key"]
