from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from apps.listings.models import Listing
from shared.application.message_bus import message_bus


@pytest.fixture
def user_factory(db):
    counter = {"n": 0}

    def make(username=None, **extra):
        counter["n"] += 1
        return get_user_model().objects.create_user(
            username=username or f"user{counter['n']}", password="pass", **extra
        )

    return make


@pytest.fixture
def guest(user_factory):
    return user_factory("guest")


@pytest.fixture
def host(user_factory):
    return user_factory("host")


@pytest.fixture
def listing(host):
    # 500 per night per guest: 2 nights x 2 guests = 2000 subtotal
    return Listing.objects.create(host=host, title="Beach house", rate=Decimal("500.00"), max_guests=4)


@pytest.fixture
def villa(host):
    # 900 per night, single guest: 2 nights = 1800 subtotal, 90 fee, 1890 total
    return Listing.objects.create(host=host, title="Villa", rate=Decimal("900.00"), max_guests=2)


@pytest.fixture
def published_events():
    """Collect every event the bus publishes during the test."""
    seen = []
    original = message_bus.publish_events

    def record(events):
        seen.extend(events)
        original(events)

    message_bus.publish_events = record
    yield seen
    message_bus.publish_events = original
