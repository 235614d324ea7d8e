"""JSON envelope helpers shared by every API blueprint.

Success: ``{"success": true, "data": ..., "meta": ...}``
Failure: ``{"success": false, "error": {"code": ..., "message": ...}}``
"""
import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Tuple

from flask import current_app, jsonify, request

from tradeflow.exceptions import ValidationError


def to_camel(name: str) -> str:
    head, *tail = name.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in tail)


def to_wire(value: Any) -> Any:
    """Recursively camelize dict keys and render Decimals/dates for JSON."""
    if isinstance(value, dict):
        return {to_camel(str(k)): to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def pagination_meta(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'total_pages': total_pages,
        'has_more': page < total_pages,
    }


def success(data: Any = None, status: int = 200, meta: Optional[dict] = None):
    body = {'success': True, 'data': to_wire(data)}
    if meta is not None:
        body['meta'] = to_wire(meta)
    return jsonify(body), status


def error(code: str, message: str, status: int, details: Optional[dict] = None):
    payload = {'code': code, 'message': message}
    if details:
        payload['details'] = to_wire(details)
    return jsonify({'success': False, 'error': payload}), status


def to_snake(name: str) -> str:
    chars = []
    for char in name:
        if char.isupper():
            chars.append('_')
            chars.append(char.lower())
        else:
            chars.append(char)
    return ''.join(chars)


def from_wire(value: Any) -> Any:
    """Incoming JSON: camelCase keys to snake_case, recursively."""
    if isinstance(value, dict):
        return {to_snake(str(k)): from_wire(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_wire(v) for v in value]
    return value


def json_body() -> dict:
    """Request JSON object with snake_case keys. Missing body reads as {}."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return from_wire(data)


def page_args() -> Tuple[int, int]:
    """(page, limit) from the query string, clamped to the configured sizes."""
    default_limit = current_app.config.get('DEFAULT_PAGE_SIZE', 20)
    max_limit = current_app.config.get('MAX_PAGE_SIZE', 100)
    page = request.args.get('page', 1, type=int) or 1
    limit = request.args.get('limit', default_limit, type=int) or default_limit
    return max(page, 1), min(max(limit, 1), max_limit)
