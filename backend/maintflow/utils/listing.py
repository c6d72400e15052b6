from __future__ import annotations
from typing import Iterable, Optional, Tuple
from flask import request, abort, make_response, current_app
from sqlalchemy.orm import Query
from maintflow.config.settings import normalize_pagination
import hashlib


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(
            request.args.get('limit'), request.args.get('offset'),
            default_limit=current_app.config['PAGE_DEFAULT_LIMIT'], max_limit=current_app.config['PAGE_MAX_LIMIT'],
        )
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def apply_multi_sort(query, sort_expr: Optional[str], allowed: dict, tie_breaker):
    """Apply ``sort=-updated_at,id`` style ordering; unknown fields abort 400."""
    if not sort_expr:
        return query.order_by(tie_breaker.asc())
    clauses = []
    for raw in sort_expr.split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token[1:] if desc else token
        col = allowed.get(key)
        if col is None:
            abort(400, description=f'Invalid sort field {key}')
        clauses.append(col.desc() if desc else col.asc())
    clauses.append(tie_breaker.asc())
    return query.order_by(*clauses)


def compute_etag(ids: Iterable[int], versions: Iterable[int], total: int, limit: int, offset: int) -> str:
    seed = f"{list(ids)}|{list(versions)}|{total}|{limit}|{offset}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }


def make_list_response(rows: list, total: int, limit: int, offset: int):
    """List response with an ETag derived from ids and row versions; honours If-None-Match."""
    etag = compute_etag([r.get('id') for r in rows], [r.get('version', 0) for r in rows], total, limit, offset)
    inm = request.headers.get('If-None-Match')
    if inm and inm.strip('"') == etag:
        resp = make_response('', 304)
    else:
        resp = make_response(build_list_payload(rows, total, limit, offset))
    resp.headers['ETag'] = etag
    return resp


__all__ = ['apply_pagination', 'apply_multi_sort', 'compute_etag', 'build_list_payload', 'make_list_response']
