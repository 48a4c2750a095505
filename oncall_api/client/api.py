# oncall_api/client/api.py
"""
Thin HTTP client for the /api/v1 surface.

Every call unwraps the ``{success, data}`` envelope and raises ClientError
for ``{success: false}`` or non-JSON replies.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests

log = logging.getLogger(__name__)


@dataclass
class ClientConfig:
    base_url: str = "http://localhost:5000/api/v1"
    token: Optional[str] = None
    timeout: float = 10.0


class ClientError(Exception):
    def __init__(self, message: str, status: Optional[int] = None,
                 code: Optional[str] = None, detail: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.detail = detail

    def __str__(self):
        bits = [self.message]
        if self.code:
            bits.append(f"code={self.code}")
        if self.status:
            bits.append(f"status={self.status}")
        return " ".join(bits)


class OnCallClient:
    def __init__(self, config: ClientConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    # ---------- plumbing ----------

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        if self.config.token:
            return {"Authorization": f"Bearer {self.config.token}"}
        return {}

    def request(self, method: str, path: str, *, params=None, json=None, files=None,
                with_meta: bool = False):
        try:
            resp = self.session.request(
                method, self._url(path),
                params=params, json=json, files=files,
                headers=self._headers(), timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            raise ClientError(f"{method} {path} failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            raise ClientError(f"{method} {path}: non-JSON response", status=resp.status_code)

        if not isinstance(body, dict) or not body.get("success"):
            err = (body or {}).get("error") if isinstance(body, dict) else None
            err = err or {}
            raise ClientError(err.get("message") or f"{method} {path} failed",
                              status=resp.status_code, code=err.get("code"),
                              detail=err.get("detail"))
        if with_meta:
            return body.get("data"), body.get("meta") or {}
        return body.get("data")

    def get(self, path, **params):
        return self.request("GET", path, params={k: v for k, v in params.items() if v is not None})

    def post(self, path, json=None, **params):
        return self.request("POST", path, json=json or {}, params=params or None)

    # ---------- auth ----------

    def login(self, login: str, password: str) -> Dict[str, Any]:
        data = self.post("/auth/login", {"email": login, "password": password})
        self.config.token = data["access"]
        return data["user"]

    def me(self) -> Dict[str, Any]:
        return self.get("/auth/me")

    # ---------- collections ----------

    def list_shifts(self, start=None, end=None, user_id=None) -> List[Dict[str, Any]]:
        return self.get("/shifts", start=_iso(start), end=_iso(end), user_id=user_id)

    def list_leaves(self, status=None) -> List[Dict[str, Any]]:
        return self.get("/leave/requests", status=status)

    def list_swaps(self, status=None) -> List[Dict[str, Any]]:
        return self.get("/swaps", status=status)

    def list_users(self, page_size: int = 100) -> List[Dict[str, Any]]:
        out, page = [], 1
        while True:
            data, meta = self.request("GET", "/users", params={"page": page, "size": page_size},
                                      with_meta=True)
            out.extend(data or [])
            if not data or len(out) >= int(meta.get("total") or 0):
                return out
            page += 1

    def notifications(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self.get("/notifications", limit=limit)

    # ---------- writes ----------

    def assign_shift(self, user_id: int, day, role: str) -> Dict[str, Any]:
        return self.post("/shifts", {"user_id": user_id, "date": _iso(day), "on_call_role": role})

    def apply_leave(self, leave_type: str, start, end, reason: str = "") -> Dict[str, Any]:
        return self.post("/leave/requests", {"type": leave_type, "start_date": _iso(start),
                                             "end_date": _iso(end), "reason": reason})

    def approve_leave(self, leave_id: int, comment: Optional[str] = None) -> Dict[str, Any]:
        return self.post(f"/leave/requests/{leave_id}/approve", {"comment": comment})

    def propose_swap(self, requester_shift_id: int, target_shift_id: Optional[int] = None,
                     reason: str = "") -> Dict[str, Any]:
        return self.post("/swaps", {"requester_shift_id": requester_shift_id,
                                    "target_shift_id": target_shift_id, "reason": reason})

    def accept_swap(self, swap_id: int, notes: Optional[str] = None,
                    target_shift_id: Optional[int] = None) -> Dict[str, Any]:
        return self.post(f"/swaps/{swap_id}/accept", {"notes": notes, "target_shift_id": target_shift_id})

    def reject_swap(self, swap_id: int, notes: Optional[str] = None) -> Dict[str, Any]:
        return self.post(f"/swaps/{swap_id}/reject", {"notes": notes})

    # ---------- change feed ----------

    def changes(self, after: int = 0, limit: int = 200) -> Tuple[List[Dict[str, Any]], int]:
        data, meta = self.request("GET", "/changes", params={"after": after, "limit": limit},
                                  with_meta=True)
        return data or [], int(meta.get("cursor") or after)

    def feed_head(self) -> int:
        _, meta = self.request("GET", "/changes", params={"after": 0, "limit": 1}, with_meta=True)
        return int(meta.get("latest") or 0)


def _iso(d):
    if d is None:
        return None
    return d.isoformat() if hasattr(d, "isoformat") else str(d)
