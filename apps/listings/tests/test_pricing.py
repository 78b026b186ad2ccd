from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from apps.listings.models import Listing


@pytest.fixture
def host():
    return get_user_model().objects.create_user(username="host", password="pass")


@pytest.mark.django_db
def test_home_subtotal_is_per_night_and_guest(host):
    listing = Listing.objects.create(host=host, title="Loft", rate=Decimal("500.00"))

    assert listing.quote_subtotal(nights=2, guests=2) == Decimal("2000.00")


@pytest.mark.django_db
def test_listing_discount_applies_before_units(host):
    listing = Listing.objects.create(
        host=host, title="Loft", rate=Decimal("1000.00"), discount_percent=10,
    )

    assert listing.quote_subtotal(nights=3, guests=1) == Decimal("2700.00")


@pytest.mark.django_db
def test_experience_subtotal_ignores_nights(host):
    listing = Listing.objects.create(
        host=host,
        title="Island hopping",
        category=Listing.Category.EXPERIENCE,
        rate=Decimal("750.00"),
    )

    assert listing.quote_subtotal(nights=5, guests=2) == Decimal("1500.00")


@pytest.mark.django_db
def test_only_active_listings_are_bookable(host):
    listing = Listing.objects.create(
        host=host, title="Loft", rate=Decimal("500.00"), status=Listing.Status.DRAFT,
    )

    assert not listing.is_bookable
