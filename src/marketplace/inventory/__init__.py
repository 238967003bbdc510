"""Inventory: stock reservation ledger."""
