"""
API exception handling.

Wraps DRF's default handler so that every error body carries a machine
readable ``code`` next to the human readable ``detail``. Clients branch on
``code`` (e.g. ``sold_out`` vs ``limit_reached``), never on message text.
"""

from rest_framework.views import exception_handler


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(response.data, dict) and 'detail' in response.data:
        codes = exc.get_codes() if hasattr(exc, 'get_codes') else None
        if isinstance(codes, str):
            response.data['code'] = codes
        elif isinstance(codes, dict) and isinstance(codes.get('detail'), str):
            response.data['code'] = codes['detail']

    return response
