# oncall_api/common/paging.py
from flask import request

DEFAULT_PAGE = 1
DEFAULT_SIZE = 20
MAX_SIZE = 100

def page_limit():
    try:
        page = max(int(request.args.get("page", DEFAULT_PAGE)), 1)
    except Exception:
        page = DEFAULT_PAGE
    try:
        size = int(request.args.get("size", DEFAULT_SIZE))
        size = max(1, min(size, MAX_SIZE))
    except Exception:
        size = DEFAULT_SIZE
    return page, size

def paginate(query):
    """Apply ?page/&size to a query; returns (items, meta)."""
    page, size = page_limit()
    total = query.order_by(None).count()
    items = query.limit(size).offset((page - 1) * size).all()
    return items, {"page": page, "size": size, "total": total}

def text_q():
    q = request.args.get("q", "")
    return q.strip() or None
