"""Discounts app package.

Coupons (host-defined promo codes) and vouchers (host-issued, claimed by a
guest before use) are two providers behind one engine. At most one of them
can be attached to a booking, and usage counters are incremented exactly
once per booking when its payment completes.
"""
