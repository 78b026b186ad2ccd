"""API views for discounts: quotes, host-managed coupons and vouchers, voucher claims."""

from __future__ import annotations

from rest_framework import generics, permissions, status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.bookings.application.command_handlers import BookingWorkflowService
from apps.listings.models import Listing
from shared.domain.exceptions import AuthorizationError

from .engine import DiscountEngine
from .models import Coupon
from .serializers import CouponSerializer, QuoteRequestSerializer, VoucherSerializer


def ensure_listing_owner(listing: Listing | None, user) -> None:
    if listing is not None and listing.host_id != user.id:
        raise AuthorizationError("Discounts can only be scoped to your own listings")


class QuoteView(APIView):
    """Price a prospective booking, including at most one promo code or voucher."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):  # type: ignore
        serializer = QuoteRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        quote = BookingWorkflowService().quote(
            data["listing"],
            request.user.id,
            check_in=data.get("check_in"),
            check_out=data.get("check_out"),
            guests=data["guests"],
            promo_code=data["promo_code"],
            voucher_code=data["voucher_code"],
        )
        return Response(quote.to_dict())


class CouponListCreateView(generics.ListCreateAPIView):
    serializer_class = CouponSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):  # type: ignore
        return Coupon.objects.filter(host=self.request.user).order_by("-created_at")

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        ensure_listing_owner(data.get("listing"), request.user)
        coupon = DiscountEngine().create_coupon(
            request.user.id,
            data["code"],
            data["discount_type"],
            data["discount_value"],
            listing_id=data["listing"].pk if data.get("listing") else None,
            min_purchase=data.get("min_purchase"),
            max_uses=data.get("max_uses"),
            valid_from=data.get("valid_from"),
            valid_until=data.get("valid_until"),
        )
        return Response(self.get_serializer(coupon).data, status=status.HTTP_201_CREATED)


class VoucherListCreateView(generics.ListCreateAPIView):
    """
    GET: vouchers open for claiming (``?host=`` / ``?listing=`` to narrow).
    POST: a host issues a voucher; the code is generated.
    """

    serializer_class = VoucherSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):  # type: ignore
        params = self.request.query_params
        host = params.get("host")
        listing = params.get("listing")
        return DiscountEngine().available_vouchers(
            host_id=int(host) if host and host.isdigit() else None,
            listing_id=int(listing) if listing and listing.isdigit() else None,
        ).order_by("-created_at")

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        ensure_listing_owner(data.get("listing"), request.user)
        voucher = DiscountEngine().create_voucher(
            request.user.id,
            data["discount_percent"],
            listing_id=data["listing"].pk if data.get("listing") else None,
            starts_at=data.get("starts_at"),
            expires_at=data.get("expires_at"),
            usage_limit=data.get("usage_limit", 1),
        )
        return Response(self.get_serializer(voucher).data, status=status.HTTP_201_CREATED)


class ClaimedVoucherListView(generics.ListAPIView):
    serializer_class = VoucherSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):  # type: ignore
        return DiscountEngine().claimed_vouchers(self.request.user.id)


class ClaimVoucherView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk: int):  # type: ignore
        voucher = DiscountEngine().claim_voucher(pk, request.user.id)
        return Response(VoucherSerializer(voucher).data, status=status.HTTP_200_OK)
