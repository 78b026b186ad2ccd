"""API views for host payout settings and transfer history."""

from __future__ import annotations

from rest_framework import generics, permissions, status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from .dispatcher import PayoutDispatcher
from .models import HostAccount, PayoutMethod, PendingTransfer
from .serializers import HostAccountSerializer, PayoutMethodSerializer, PendingTransferSerializer


class PayoutMethodListCreateView(generics.ListCreateAPIView):
    """Payout methods of the authenticated host; a new default replaces the old one."""

    serializer_class = PayoutMethodSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):  # type: ignore
        return PayoutMethod.objects.filter(host=self.request.user)

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        method = PayoutDispatcher().set_payout_method(
            request.user.id,
            data["type"],
            data.get("account_ref", ""),
            is_default=data.get("is_default", True),
        )
        return Response(self.get_serializer(method).data, status=status.HTTP_201_CREATED)


class PendingTransferListView(generics.ListAPIView):
    serializer_class = PendingTransferSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):  # type: ignore
        qs = PendingTransfer.objects.filter(host=self.request.user)
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs


class MyHostAccountView(APIView):
    """Earnings and reward points of the authenticated host."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):  # type: ignore
        account, _ = HostAccount.objects.get_or_create(host=request.user)
        return Response(HostAccountSerializer(account).data)
