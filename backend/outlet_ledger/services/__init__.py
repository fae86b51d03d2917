"""Outlet ledger services."""
