"""
Vault Ledger

A single-asset custodial ledger with per-owner vaults, a global intake cap,
a per-withdrawal limit and all-or-nothing payouts.
"""

__version__ = "1.0.0"
