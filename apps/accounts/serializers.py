from rest_framework import serializers
from .models import User


class UserSerializer(serializers.ModelSerializer):
    """Basic user serializer for profile display."""

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'display_name',
            'tier',
            'subscription_start_date',
            'is_partner',
            'created_at',
            'last_login',
        ]
        # Entitlements change through admin only
        read_only_fields = [
            'id',
            'email',
            'tier',
            'subscription_start_date',
            'is_partner',
            'created_at',
            'last_login',
        ]
