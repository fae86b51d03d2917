"""Outlet ledger: live per-outlet inventory."""
