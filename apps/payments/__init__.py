"""
Payments app

Payment intents against the external gateway, capture verification and
reconciliation with bookings, and the manual refund queue.
"""
