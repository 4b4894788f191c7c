"""
Redemption code generator.

Codes look like ``FODB-7K2QH9XM``: a three-letter category prefix padded
with X, the vendor's initial, and a random suffix. Uniqueness is enforced
by the database; callers retry on collision.
"""

import re
import secrets


# No 0/O or 1/I, so codes survive being read aloud at the till
CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
SUFFIX_LENGTH = 8

_NON_ALPHA = re.compile(r'[^A-Z]')


def _letters(value: str) -> str:
    return _NON_ALPHA.sub('', (value or '').upper())


def generate_redemption_code(category: str, vendor: str = '') -> str:
    prefix = _letters(category)[:3].ljust(3, 'X')
    initial = _letters(vendor)[:1] or 'X'
    suffix = ''.join(secrets.choice(CODE_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}{initial}-{suffix}"


def normalize_manual_code(raw: str) -> str:
    """Uppercase and strip whitespace from a hand-typed code."""
    return re.sub(r'\s+', '', raw or '').upper()
