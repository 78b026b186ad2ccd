"""Listings app package.

The listing catalog is owned by the surrounding platform. This app keeps
only what the booking core needs to price a reservation server-side: the
host, the category, the rate and the listing-level discount.
"""
