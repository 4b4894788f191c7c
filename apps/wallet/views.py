import base64

from django.utils import timezone
from rest_framework import viewsets, status, serializers as drf_serializers
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema

from .models import WalletItemStatus
from .permissions import IsPartner
from .serializers import (
    ConfirmationInputSerializer,
    ConfirmationResultSerializer,
    DealRedemptionSerializer,
    MembershipSummarySerializer,
    PartnerRedemptionSerializer,
    PendingConfirmationSerializer,
    RedeemInputSerializer,
    RedemptionOutcomeSerializer,
    RedemptionStatusSerializer,
    ScanInputSerializer,
    WalletItemFilterSerializer,
    WalletItemSerializer,
)

from apps.wallet.services import (
    confirm_redemption,
    deny_redemption,
    encode,
    get_membership_summary,
    get_partner_redemptions,
    get_pending_confirmation,
    get_redemption_history,
    get_redemption_status,
    get_wallet_items,
    redeem_wallet_item,
    render_qr_png,
    scan_and_redeem,
    # Exceptions
    AlreadyRedeemedError,
    WalletItemExpiredError,
)


# Response serializers for API documentation
class WalletQRResponseSerializer(drf_serializers.Serializer):
    payload = drf_serializers.CharField()
    image = drf_serializers.CharField()


class WalletPagination(PageNumberPagination):
    """Custom pagination for wallet lists."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class WalletItemViewSet(viewsets.ReadOnlyModelViewSet):
    """
    The caller's wallet.

    list: Wallet items, filterable by effective status
    retrieve: One wallet item
    qr: QR payload and PNG for the vendor to scan
    pending_confirmation: Open approval request from a vendor scan
    confirm / deny: Answer the approval request
    redeem: Owner self-redeem
    """

    serializer_class = WalletItemSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = WalletPagination

    def get_queryset(self):
        status_filter = None
        if self.action == 'list':
            filter_serializer = WalletItemFilterSerializer(data=self.request.query_params)
            filter_serializer.is_valid(raise_exception=True)
            status_filter = filter_serializer.validated_data.get('status')
        return get_wallet_items(user=self.request.user, status=status_filter)

    @extend_schema(responses={200: WalletQRResponseSerializer})
    @action(detail=True, methods=['get'])
    def qr(self, request, pk=None):
        """
        QR code for an active wallet item.

        GET /api/wallet/items/{id}/qr/
        """
        item = self.get_object()
        current = item.effective_status(timezone.now())
        if current == WalletItemStatus.REDEEMED:
            raise AlreadyRedeemedError()
        if current == WalletItemStatus.EXPIRED:
            raise WalletItemExpiredError()

        payload = encode(item.id, item.redemption_code)
        image = base64.b64encode(render_qr_png(payload)).decode('ascii')
        return Response({
            'payload': payload,
            'image': f'data:image/png;base64,{image}',
        })

    @extend_schema(responses={200: PendingConfirmationSerializer, 204: None})
    @action(detail=True, methods=['get'])
    def pending_confirmation(self, request, pk=None):
        """
        Approval request waiting on this item, if any.

        GET /api/wallet/items/{id}/pending_confirmation/
        """
        item = self.get_object()
        confirmation = get_pending_confirmation(wallet_item_id=item.id, user=request.user)
        if confirmation is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(PendingConfirmationSerializer(confirmation).data)

    @extend_schema(request=ConfirmationInputSerializer, responses={200: ConfirmationResultSerializer})
    @action(detail=True, methods=['post'])
    def confirm(self, request, pk=None):
        """
        Approve a vendor-initiated redemption.

        POST /api/wallet/items/{id}/confirm/
        Body: {"token": "..."}
        """
        item = self.get_object()
        serializer = ConfirmationInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = confirm_redemption(
            wallet_item_id=item.id,
            token=serializer.validated_data['token'],
            user=request.user,
        )
        return Response(
            ConfirmationResultSerializer(result).data,
            status=status.HTTP_200_OK if result.success else status.HTTP_409_CONFLICT
        )

    @extend_schema(request=ConfirmationInputSerializer, responses={200: ConfirmationResultSerializer})
    @action(detail=True, methods=['post'])
    def deny(self, request, pk=None):
        """
        Decline a vendor-initiated redemption.

        POST /api/wallet/items/{id}/deny/
        Body: {"token": "..."}
        """
        item = self.get_object()
        serializer = ConfirmationInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = deny_redemption(
            wallet_item_id=item.id,
            token=serializer.validated_data['token'],
            user=request.user,
        )
        return Response(
            ConfirmationResultSerializer(result).data,
            status=status.HTTP_200_OK if result.success else status.HTTP_409_CONFLICT
        )

    @extend_schema(request=RedeemInputSerializer, responses={200: RedemptionOutcomeSerializer})
    @action(detail=True, methods=['post'])
    def redeem(self, request, pk=None):
        """
        Redeem your own wallet item.

        POST /api/wallet/items/{id}/redeem/
        Body: {"redemption_code": "..."}
        """
        item = self.get_object()
        serializer = RedeemInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=serializer.validated_data['redemption_code'],
            acting_party=request.user,
        )
        return Response(RedemptionOutcomeSerializer(outcome).data)


@extend_schema(
    responses={200: MembershipSummarySerializer},
    description="Monthly redemption quota and wallet capacity for the current user.",
    tags=['wallet'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def wallet_limits(request):
    """Get quota and capacity for current user."""
    summary = get_membership_summary(request.user)
    return Response(MembershipSummarySerializer(summary).data)


@extend_schema(
    responses={200: DealRedemptionSerializer(many=True)},
    description="The current user's redemption history, newest first.",
    tags=['wallet'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def redemption_history(request):
    """Get redemption history for current user."""
    paginator = WalletPagination()
    page = paginator.paginate_queryset(get_redemption_history(user=request.user), request)
    serializer = DealRedemptionSerializer(page, many=True)
    return paginator.get_paginated_response(serializer.data)


@extend_schema(
    request=ScanInputSerializer,
    responses={200: RedemptionOutcomeSerializer, 202: RedemptionOutcomeSerializer},
    description=(
        "Scan a wallet QR payload or a typed code. Returns 200 when redeemed, "
        "202 when the customer must confirm; poll the item status afterwards."
    ),
    tags=['vendor'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPartner])
def vendor_scan(request):
    """Redeem a scanned wallet item."""
    serializer = ScanInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    outcome = scan_and_redeem(raw=serializer.validated_data['payload'], acting_party=request.user)
    return Response(
        RedemptionOutcomeSerializer(outcome).data,
        status=status.HTTP_202_ACCEPTED if outcome.requires_confirmation else status.HTTP_200_OK
    )


@extend_schema(
    responses={200: RedemptionStatusSerializer},
    description="Wallet item status and latest confirmation state, for polling.",
    tags=['vendor'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPartner])
def vendor_item_status(request, wallet_item_id):
    """Get redemption status of a wallet item."""
    result = get_redemption_status(wallet_item_id=wallet_item_id, viewer=request.user)
    return Response(RedemptionStatusSerializer(result).data)


@extend_schema(
    responses={200: PartnerRedemptionSerializer(many=True)},
    description="Redemptions of the partner's own deals (staff see all).",
    tags=['vendor'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPartner])
def vendor_redemptions(request):
    """Get redemptions processed for the partner's deals."""
    paginator = WalletPagination()
    page = paginator.paginate_queryset(get_partner_redemptions(partner=request.user), request)
    serializer = PartnerRedemptionSerializer(page, many=True)
    return paginator.get_paginated_response(serializer.data)
