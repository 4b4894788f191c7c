from rest_framework import serializers

from .models import Deal
from .services import can_claim, is_locked


# =============================================================================
# Input Serializers
# =============================================================================

class DealFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for the deal catalog.

    Query Parameters:
        category (str): Exact category
        search (str): Match on title or vendor
        include_expired (bool): Also list expired deals
    """

    category = serializers.CharField(max_length=100, required=False)
    search = serializers.CharField(max_length=200, required=False)
    include_expired = serializers.BooleanField(required=False, default=False)


# =============================================================================
# Output Serializers
# =============================================================================

class DealMinimalSerializer(serializers.ModelSerializer):
    """Minimal deal info for nested serialization."""

    class Meta:
        model = Deal
        fields = ['id', 'title', 'title_tr', 'vendor', 'category', 'image_url', 'expires_at']
        read_only_fields = fields


class DealListSerializer(serializers.ModelSerializer):
    """
    Catalog entry with per-viewer flags.

    ``is_locked`` is the display state (anonymous visitors preview FREE
    deals); ``can_claim`` is what the claim endpoint will enforce.
    """

    sold_out = serializers.BooleanField(read_only=True)
    never_expires = serializers.BooleanField(read_only=True)
    is_locked = serializers.SerializerMethodField()
    can_claim = serializers.SerializerMethodField()
    is_saved = serializers.SerializerMethodField()

    class Meta:
        model = Deal
        fields = [
            'id',
            'title',
            'title_tr',
            'category',
            'vendor',
            'image_url',
            'original_price',
            'discounted_price',
            'discount_percentage',
            'required_tier',
            'expires_at',
            'never_expires',
            'sold_out',
            'requires_confirmation',
            'is_locked',
            'can_claim',
            'is_saved',
        ]
        read_only_fields = fields

    def _viewer(self):
        request = self.context.get('request')
        return getattr(request, 'user', None)

    def get_is_locked(self, obj):
        return is_locked(self._viewer(), obj)

    def get_can_claim(self, obj):
        return can_claim(self._viewer(), obj)

    def get_is_saved(self, obj):
        return obj.id in self.context.get('saved_deal_ids', set())


class DealDetailSerializer(DealListSerializer):
    """Full deal with description, caps and savings."""

    savings_amount = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    effective_discount_percentage = serializers.IntegerField(read_only=True)

    class Meta(DealListSerializer.Meta):
        fields = DealListSerializer.Meta.fields + [
            'description',
            'description_tr',
            'max_redemptions',
            'max_redemptions_per_user',
            'redemptions_count',
            'savings_amount',
            'effective_discount_percentage',
        ]
        read_only_fields = fields
