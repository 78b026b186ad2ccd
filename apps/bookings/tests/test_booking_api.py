"""Integration tests for booking endpoints."""

from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.listings.models import Listing
from apps.wallets.ledger import WalletLedger


class BookingAPITests(APITestCase):
    def setUp(self) -> None:
        user_model = get_user_model()
        self.guest = user_model.objects.create_user(username="guest", password="pass")
        self.host = user_model.objects.create_user(username="host", password="pass")
        self.stranger = user_model.objects.create_user(username="stranger", password="pass")
        self.listing = Listing.objects.create(
            host=self.host, title="Villa", rate=Decimal("900.00"), max_guests=2
        )
        self.payload = {
            "listing": self.listing.id,
            "check_in": "2026-12-01",
            "check_out": "2026-12-03",
        }

    def create_booking(self, **overrides):
        self.client.force_authenticate(self.guest)
        return self.client.post(reverse("booking-list"), {**self.payload, **overrides}, format="json")

    def test_create_prices_server_side_and_pays_from_wallet(self) -> None:
        WalletLedger().top_up(self.guest.id, "2000.00", reference="bank-1")

        response = self.create_booking(total="1890.00")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["status"], "pending_approval")
        self.assertEqual(response.data["payment_status"], "completed")
        self.assertEqual(Decimal(response.data["service_fee"]), Decimal("90.00"))
        self.assertEqual(Decimal(response.data["total"]), Decimal("1890.00"))
        self.assertEqual(WalletLedger().balance(self.guest.id), Decimal("110.00"))

    def test_insufficient_funds_is_payment_required(self) -> None:
        response = self.create_booking()

        self.assertEqual(response.status_code, status.HTTP_402_PAYMENT_REQUIRED)
        self.assertEqual(response.data["required"], "1890.00")
        self.assertEqual(self.client.get(reverse("booking-list")).data["count"], 0)

    def test_client_total_must_match(self) -> None:
        response = self.create_booking(payment_timing="later", total="1800.00")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "validation_error")

    def test_approve_then_history(self) -> None:
        WalletLedger().top_up(self.guest.id, "1890.00", reference="bank-1")
        booking_id = self.create_booking().data["id"]

        self.client.force_authenticate(self.host)
        response = self.client.post(reverse("booking-approve", args=[booking_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "confirmed")
        self.assertEqual(WalletLedger().balance(self.host.id), Decimal("1800.00"))

        response = self.client.post(reverse("booking-approve", args=[booking_id]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(WalletLedger().balance(self.host.id), Decimal("1800.00"))

        response = self.client.get(reverse("booking-history", args=[booking_id]))
        self.assertEqual(
            [(change["from_status"], change["to_status"]) for change in response.data],
            [("", "pending_approval"), ("pending_approval", "confirmed")],
        )

    def test_guest_cannot_approve(self) -> None:
        booking_id = self.create_booking(payment_timing="later").data["id"]

        response = self.client.post(reverse("booking-approve", args=[booking_id]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_bookings_are_visible_to_guest_and_host_only(self) -> None:
        booking_id = self.create_booking(payment_timing="later").data["id"]

        self.client.force_authenticate(self.host)
        self.assertEqual(self.client.get(reverse("booking-list"), {"role": "host"}).data["count"], 1)
        self.assertEqual(self.client.get(reverse("booking-list"), {"role": "guest"}).data["count"], 0)

        self.client.force_authenticate(self.stranger)
        response = self.client.get(reverse("booking-detail", args=[booking_id]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_pay_later_with_wallet(self) -> None:
        booking_id = self.create_booking(payment_timing="later").data["id"]
        WalletLedger().top_up(self.guest.id, "1890.00", reference="bank-1")

        response = self.client.post(
            reverse("booking-pay-wallet", args=[booking_id]), {"amount": "1890.00"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["payment_status"], "completed")
        self.assertEqual(WalletLedger().balance(self.guest.id), Decimal("0.00"))

    def test_external_payment_intent(self) -> None:
        booking_id = self.create_booking(payment_method="external").data["id"]

        response = self.client.post(reverse("booking-payment-intent", args=[booking_id]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(Decimal(response.data["amount"]), Decimal("1890.00"))

        response = self.client.post(
            reverse("booking-payment-intent", args=[booking_id]), {"amount": "10.00"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancellation_round_trip(self) -> None:
        booking_id = self.create_booking(payment_timing="later").data["id"]
        self.client.force_authenticate(self.host)
        self.client.post(reverse("booking-approve", args=[booking_id]))

        self.client.force_authenticate(self.guest)
        response = self.client.post(
            reverse("booking-request-cancellation", args=[booking_id]), {"reason": "Plans changed"}, format="json"
        )
        self.assertEqual(response.data["status"], "pending_cancellation")

        self.client.force_authenticate(self.host)
        response = self.client.post(reverse("booking-reject-cancellation", args=[booking_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "confirmed")
