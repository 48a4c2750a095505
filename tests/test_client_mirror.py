from datetime import date, timedelta
from urllib.parse import urlsplit

import pytest
import requests

from oncall_api.client import ClientConfig, ClientError, OnCallClient, ScheduleMirror
from oncall_api.extensions import db
from oncall_api.models.change_event import ChangeEvent as ChangeEventRow

from conftest import PASSWORD


def _d(n):
    return date.today() + timedelta(days=n)


class _Resp:
    def __init__(self, status_code, body, is_json=True):
        self.status_code = status_code
        self._body = body
        self._is_json = is_json

    def json(self):
        if not self._is_json:
            raise ValueError("not json")
        return self._body


class FlaskSession:
    """requests.Session stand-in that routes calls into the Flask test client."""

    def __init__(self, test_client):
        self.test_client = test_client

    def request(self, method, url, params=None, json=None, files=None, headers=None, timeout=None):
        path = urlsplit(url).path
        r = self.test_client.open(path, method=method, query_string=params, json=json, headers=headers)
        return _Resp(r.status_code, r.get_json(silent=True), r.is_json)


class _StubSession:
    def __init__(self, resp=None, exc=None):
        self.resp, self.exc = resp, exc

    def request(self, *a, **kw):
        if self.exc:
            raise self.exc
        return self.resp


@pytest.fixture
def api(client, make_user):
    mgr = make_user("boss", role="MANAGER")
    c = OnCallClient(ClientConfig(base_url="http://testserver/api/v1"), session=FlaskSession(client))
    c.login("boss", PASSWORD)
    c.manager = mgr
    return c


# ---------- client ----------

def test_client_unwraps_error_envelope(api):
    with pytest.raises(ClientError) as ei:
        api.get("/shifts/999")
    assert ei.value.status == 404 and ei.value.code == "NOT_FOUND"


def test_client_non_json_and_transport_errors():
    c = OnCallClient(ClientConfig(), session=_StubSession(resp=_Resp(502, None, is_json=False)))
    with pytest.raises(ClientError) as ei:
        c.me()
    assert ei.value.status == 502

    c = OnCallClient(ClientConfig(), session=_StubSession(exc=requests.ConnectionError("refused")))
    with pytest.raises(ClientError):
        c.me()


def test_client_login_sets_token(api):
    assert api.config.token
    assert api.me()["username"] == "boss"


def test_list_users_walks_pages(api, make_user):
    for i in range(4):
        make_user(f"u{i}")
    assert len(api.list_users(page_size=2)) == 5


# ---------- mirror ----------

def test_mirror_load_then_patch_from_feed(api, make_user):
    alice = make_user("alice")
    existing = api.assign_shift(alice.id, _d(1), "PRIMARY")

    m = ScheduleMirror(api)
    m.load()
    assert set(m.shifts) == {existing["id"]}
    assert "alice" in {u["username"] for u in m.users.values()}
    loaded = m.refetches

    created = api.assign_shift(api.manager.id, _d(2), "PRIMARY")
    leave = api.apply_leave("PAID", _d(10), _d(10))
    assert m.poll() == 2
    assert m.shifts[created["id"]]["username"] == "boss"
    assert m.leaves[leave["id"]]["status"] == "PENDING"

    api.request("DELETE", f"/shifts/{created['id']}")
    assert m.poll() == 1
    assert created["id"] not in m.shifts
    assert m.refetches == loaded


def test_mirror_skips_duplicates(api):
    m = ScheduleMirror(api)
    m.load()
    api.assign_shift(api.manager.id, _d(1), "PRIMARY")
    assert m.poll() == 1
    m.cursor = 0
    assert m.poll() == 0


def test_mirror_refetches_on_malformed_payload(api, make_user):
    alice = make_user("alice")
    m = ScheduleMirror(api)
    m.load()
    s = api.assign_shift(alice.id, _d(1), "BACKUP")

    db.session.add(ChangeEventRow(entity="SHIFT", op="UPDATE", entity_id=s["id"], payload={"garbage": True}))
    db.session.commit()

    before = m.refetches
    m.poll()
    assert m.refetches == before + 1
    assert m.shifts[s["id"]]["on_call_role"] == "BACKUP"


def test_mirror_window_drops_out_of_range_shifts(api):
    m = ScheduleMirror(api, start=_d(0), end=_d(3))
    m.load()
    api.assign_shift(api.manager.id, _d(2), "PRIMARY")
    api.assign_shift(api.manager.id, _d(9), "PRIMARY")
    m.poll()
    assert [s["date"] for s in m.shifts.values()] == [_d(2).isoformat()]


def test_mirror_window_accepts_iso_strings(api):
    m = ScheduleMirror(api, start=_d(0).isoformat(), end=_d(3).isoformat())
    m.load()
    api.assign_shift(api.manager.id, _d(1), "BACKUP")
    api.assign_shift(api.manager.id, _d(5), "BACKUP")
    assert m.poll() == 2
    assert [s["date"] for s in m.shifts.values()] == [_d(1).isoformat()]
