"""Sync engine kernel: data model, conversion table, mapping, projection and reconciliation.

Submodules are imported directly (``from fieldsync.kernel.projector import ...``);
this package deliberately re-exports nothing.
"""
