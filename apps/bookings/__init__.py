"""
Bookings app

The booking lifecycle: request, host approval or rejection, cancellation
requests, completion. State lives in the Booking aggregate; every write
goes through BookingStore's compare-and-swap.
"""
