"""Wallets app package.

Owns per-user balances and the append-only transaction log. Balances are
changed only through :class:`apps.wallets.ledger.WalletLedger`; every
balance change appends exactly one transaction in the same database
transaction.
"""
