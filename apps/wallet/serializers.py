from django.utils import timezone
from rest_framework import serializers

from apps.deals.serializers import DealMinimalSerializer
from .models import DealRedemption, PendingConfirmation, WalletItem, WalletItemStatus


# =============================================================================
# Input Serializers
# =============================================================================

class WalletItemFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for the wallet list.

    Query Parameters:
        status (str): Effective status (active, redeemed, expired)
    """

    status = serializers.ChoiceField(choices=WalletItemStatus.choices, required=False)


class RedeemInputSerializer(serializers.Serializer):
    redemption_code = serializers.CharField(max_length=32)


class ConfirmationInputSerializer(serializers.Serializer):
    token = serializers.CharField(max_length=64)


class ScanInputSerializer(serializers.Serializer):
    """
    Vendor scan input.

    Fields:
        payload (str): QR payload ``{"wi": ..., "rc": ...}`` or a typed code
    """

    payload = serializers.CharField(max_length=512, trim_whitespace=True)


# =============================================================================
# Output Serializers
# =============================================================================

class WalletItemSerializer(serializers.ModelSerializer):
    """Wallet item with its effective status."""

    deal = DealMinimalSerializer(read_only=True)
    status = serializers.SerializerMethodField()

    class Meta:
        model = WalletItem
        fields = ['id', 'deal', 'redemption_code', 'status', 'acquired_at', 'redeemed_at']
        read_only_fields = fields

    def get_status(self, obj):
        return obj.effective_status(timezone.now())


class PendingConfirmationSerializer(serializers.ModelSerializer):
    """What the owner's device needs to show the approval prompt."""

    deal_title = serializers.CharField(source='wallet_item.deal.title', read_only=True)
    requested_by = serializers.SerializerMethodField()
    seconds_remaining = serializers.SerializerMethodField()

    class Meta:
        model = PendingConfirmation
        fields = [
            'wallet_item',
            'token',
            'deal_title',
            'requested_by',
            'expires_at',
            'seconds_remaining',
        ]
        read_only_fields = fields

    def get_requested_by(self, obj):
        return obj.initiated_by.get_display_name() if obj.initiated_by else None

    def get_seconds_remaining(self, obj):
        return obj.seconds_remaining(timezone.now())


class ConfirmationResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    message = serializers.CharField()
    code = serializers.CharField(allow_null=True)


class RedemptionOutcomeSerializer(serializers.Serializer):
    """
    Result of a redeem or scan.

    The confirmation token is deliberately absent; only the owner's
    device receives it.
    """

    success = serializers.BooleanField()
    requires_confirmation = serializers.BooleanField()
    message = serializers.CharField()
    wallet_item_id = serializers.UUIDField(source='wallet_item.id')
    deal = DealMinimalSerializer(source='wallet_item.deal')
    redeemed_at = serializers.DateTimeField(source='redemption.redeemed_at', default=None)
    confirmation_expires_at = serializers.DateTimeField(source='confirmation.expires_at', default=None)


class RedemptionStatusSerializer(serializers.Serializer):
    wallet_item_id = serializers.UUIDField()
    status = serializers.CharField()
    confirmation_state = serializers.CharField(allow_null=True)
    confirmation_expires_at = serializers.DateTimeField(allow_null=True)
    is_settled = serializers.BooleanField()


class DealRedemptionSerializer(serializers.ModelSerializer):
    deal = DealMinimalSerializer(read_only=True)

    class Meta:
        model = DealRedemption
        fields = ['id', 'deal', 'wallet_item', 'redeemed_at']
        read_only_fields = fields


class PartnerRedemptionSerializer(DealRedemptionSerializer):
    """Redemption as seen by the deal's partner."""

    customer = serializers.CharField(source='user.get_display_name', read_only=True)

    class Meta(DealRedemptionSerializer.Meta):
        fields = DealRedemptionSerializer.Meta.fields + ['customer']
        read_only_fields = fields


class QuotaSerializer(serializers.Serializer):
    """Monthly quota; ``total`` and ``remaining`` are null when unlimited."""

    used = serializers.IntegerField()
    total = serializers.IntegerField(allow_null=True)
    remaining = serializers.IntegerField(allow_null=True)
    unlimited = serializers.BooleanField(source='is_unlimited')


class WalletCapacitySerializer(serializers.Serializer):
    active_count = serializers.IntegerField()
    limit = serializers.IntegerField()
    limit_label = serializers.CharField()
    remaining_slots = serializers.IntegerField()
    usage_percent = serializers.FloatField()
    is_full = serializers.BooleanField()
    is_near_capacity = serializers.BooleanField()
    unlimited = serializers.BooleanField(source='is_unlimited')


class MembershipSummarySerializer(serializers.Serializer):
    tier = serializers.CharField()
    quota = QuotaSerializer()
    resets_on = serializers.DateField()
    renews_on = serializers.DateField()
    wallet = WalletCapacitySerializer()
