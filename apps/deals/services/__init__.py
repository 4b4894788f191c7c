"""
Deals app services layer.

Entitlement checks and catalog reads. Claiming and redeeming live in
the wallet app.
"""

from .exceptions import (
    DealsServiceError,
    DealNotFoundError,
)

from .entitlement import (
    tier_rank,
    can_claim,
    is_locked,
)

from .catalog import (
    get_listed_deals,
    parse_deal_id,
    get_deal_by_id,
    save_deal,
    unsave_deal,
    get_saved_deal_ids,
)


__all__ = [
    # Exceptions
    'DealsServiceError',
    'DealNotFoundError',

    # Entitlement
    'tier_rank',
    'can_claim',
    'is_locked',

    # Catalog
    'get_listed_deals',
    'parse_deal_id',
    'get_deal_by_id',
    'save_deal',
    'unsave_deal',
    'get_saved_deal_ids',
]
