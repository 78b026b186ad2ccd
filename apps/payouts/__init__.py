"""Payouts app package.

Moves a host's share of a paid booking into the host's wallet, records
external settlement obligations for hosts paid by PayPal or bank transfer,
and hands those obligations to the payout API.
"""
