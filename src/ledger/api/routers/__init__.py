"""Ledger REST routers."""
