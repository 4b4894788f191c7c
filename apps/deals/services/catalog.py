"""
Deal catalog service.

Read access to listed deals and saved-deal bookmarks.
"""

from typing import Optional
from uuid import UUID

from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from apps.accounts.models import User
from apps.deals.models import Deal, SavedDeal

from .exceptions import DealNotFoundError


def get_listed_deals(
    *,
    category: Optional[str] = None,
    search: Optional[str] = None,
    include_expired: bool = False,
    now=None
) -> QuerySet[Deal]:
    """
    Deals visible in the catalog.

    Args:
        category: Optional exact category filter
        search: Optional case-insensitive match on title or vendor
        include_expired: Include deals whose expiry has passed
        now: Reference time (defaults to timezone.now())

    Returns:
        QuerySet of active deals, newest first
    """
    now = now or timezone.now()
    queryset = Deal.objects.filter(is_active=True).select_related('partner')

    if not include_expired:
        queryset = queryset.filter(expires_at__gt=now)
    if category:
        queryset = queryset.filter(category=category)
    if search:
        queryset = queryset.filter(
            Q(title__icontains=search) |
            Q(title_tr__icontains=search) |
            Q(vendor__icontains=search)
        )

    return queryset


def parse_deal_id(deal_id) -> UUID:
    """
    Raises:
        DealNotFoundError: If the id is not a UUID
    """
    if isinstance(deal_id, UUID):
        return deal_id
    try:
        return UUID(str(deal_id))
    except ValueError:
        raise DealNotFoundError(f"Deal with ID {deal_id} not found")


def get_deal_by_id(*, deal_id: UUID) -> Deal:
    """
    Get a listed deal.

    Raises:
        DealNotFoundError: If deal doesn't exist or is unlisted
    """
    deal_id = parse_deal_id(deal_id)
    try:
        return Deal.objects.select_related('partner').get(id=deal_id, is_active=True)
    except Deal.DoesNotExist:
        raise DealNotFoundError(f"Deal with ID {deal_id} not found")


def save_deal(*, user: User, deal_id: UUID) -> SavedDeal:
    """
    Bookmark a deal. Saving twice returns the existing bookmark.

    Raises:
        DealNotFoundError: If deal doesn't exist
    """
    deal = get_deal_by_id(deal_id=deal_id)
    try:
        with transaction.atomic():
            saved, _ = SavedDeal.objects.get_or_create(user=user, deal=deal)
    except IntegrityError:
        # Concurrent save of the same deal
        saved = SavedDeal.objects.get(user=user, deal=deal)
    return saved


def unsave_deal(*, user: User, deal_id: UUID) -> bool:
    """
    Remove a bookmark. Returns whether one existed.

    Raises:
        DealNotFoundError: If the id is not a UUID
    """
    deleted, _ = SavedDeal.objects.filter(user=user, deal_id=parse_deal_id(deal_id)).delete()
    return deleted > 0


def get_saved_deal_ids(*, user: User) -> set:
    if user is None or not user.is_authenticated:
        return set()
    return set(SavedDeal.objects.filter(user=user).values_list('deal_id', flat=True))
