"""
Custom permission classes for the wallet app.
"""
from rest_framework.permissions import BasePermission


class IsPartner(BasePermission):
    """
    Vendor endpoints: partner accounts and staff only.

    Which items a partner may act on is decided per item by the
    redemption service (the deal must be theirs).
    """

    message = 'Only partner accounts can use the scanner.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and (user.is_partner or user.is_staff))
