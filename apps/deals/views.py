from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema

from .serializers import (
    DealDetailSerializer,
    DealFilterSerializer,
    DealListSerializer,
)

from apps.deals.services import (
    get_listed_deals,
    get_saved_deal_ids,
    save_deal,
    unsave_deal,
    # Exceptions
    DealNotFoundError,
)
from apps.wallet.serializers import WalletItemSerializer
from apps.wallet.services import claim_deal


class DealPagination(PageNumberPagination):
    """Custom pagination for the deal catalog."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class DealViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Deal catalog.

    Views are thin HTTP handlers; entitlement, quota and capacity rules
    live in the services.

    list: Browse listed deals (anonymous allowed)
    retrieve: Deal detail with viewer flags
    save: Bookmark / remove bookmark
    claim: Put the deal in the caller's wallet
    """

    serializer_class = DealListSerializer
    pagination_class = DealPagination

    def get_permissions(self):
        if self.action in ['save', 'claim']:
            return [IsAuthenticated()]
        return [AllowAny()]

    def get_queryset(self):
        if self.action == 'list':
            filter_serializer = DealFilterSerializer(data=self.request.query_params)
            filter_serializer.is_valid(raise_exception=True)
            params = filter_serializer.validated_data
            return get_listed_deals(
                category=params.get('category'),
                search=params.get('search'),
                include_expired=params['include_expired'],
            )
        # Detail lookups also resolve expired deals so clients can show them as such
        return get_listed_deals(include_expired=True)

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return DealDetailSerializer
        return DealListSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['saved_deal_ids'] = get_saved_deal_ids(user=self.request.user)
        return context

    @extend_schema(request=None, responses={201: None, 204: None})
    @action(detail=True, methods=['post', 'delete'])
    def save(self, request, pk=None):
        """
        Save or unsave a deal.

        POST   /api/deals/{id}/save/
        DELETE /api/deals/{id}/save/
        """
        try:
            if request.method == 'DELETE':
                unsave_deal(user=request.user, deal_id=pk)
                return Response(status=status.HTTP_204_NO_CONTENT)
            save_deal(user=request.user, deal_id=pk)
        except DealNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)

        return Response({'saved': True}, status=status.HTTP_201_CREATED)

    @extend_schema(request=None, responses={201: WalletItemSerializer})
    @action(detail=True, methods=['post'])
    def claim(self, request, pk=None):
        """
        Claim a deal into the wallet.

        POST /api/deals/{id}/claim/

        Errors carry ``code``: not_entitled, sold_out, already_owned,
        wallet_full, limit_reached, item_expired, not_found.
        """
        item = claim_deal(user=request.user, deal_id=pk)
        return Response(
            WalletItemSerializer(item, context={'request': request}).data,
            status=status.HTTP_201_CREATED
        )
