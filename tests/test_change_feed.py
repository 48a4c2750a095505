from datetime import date, datetime, timedelta

import pytest

from oncall_api.extensions import db
from oncall_api.models.change_event import ChangeEvent as ChangeEventRow
from oncall_api.realtime.dispatch import EventDispatcher, ProcessedEventLRU
from oncall_api.realtime.events import ChangeEvent, Entity, MalformedEvent, Op
from oncall_api.realtime.feed import changes_after, latest_cursor, prune_changes, record_change
from oncall_api.services import leave_service, shift_service


def _d(n):
    return date.today() + timedelta(days=n)


def _ev(entity_id, op=Op.UPDATE, updated_at="2031-01-01T00:00:00", entity=Entity.SHIFT):
    return ChangeEvent(entity=entity, op=op, entity_id=entity_id,
                       payload={"id": entity_id, "updated_at": updated_at})


# ---------- LRU ----------

def test_lru_dedups_and_evicts_oldest():
    lru = ProcessedEventLRU(capacity=3)
    assert lru.seen("a") is False
    assert lru.seen("b") is False
    assert lru.seen("c") is False
    assert lru.seen("a") is True       # refreshes "a"
    assert lru.seen("d") is False      # evicts "b", the least recently seen
    assert "b" not in lru
    assert "a" in lru and "c" in lru and "d" in lru
    assert len(lru) == 3


def test_lru_rejects_bad_capacity():
    with pytest.raises(ValueError):
        ProcessedEventLRU(0)


# ---------- events ----------

def test_event_from_dict_and_key():
    ev = ChangeEvent.from_dict({"id": 7, "entity": "LEAVE", "op": "CREATE", "entity_id": "3",
                                "payload": {"id": 3, "updated_at": "x"}, "created_at": "y"})
    assert ev.entity is Entity.LEAVE and ev.op is Op.CREATE and ev.entity_id == 3
    assert ev.cursor == 7
    assert ev.event_key == ("LEAVE", 3, "CREATE", "x")


@pytest.mark.parametrize("row", [
    None,
    {"entity": "PAYSLIP", "op": "CREATE", "entity_id": 1},
    {"entity": "SHIFT", "op": "MERGE", "entity_id": 1},
    {"entity": "SHIFT", "op": "CREATE"},
    {"entity": "SHIFT", "op": "CREATE", "entity_id": 1, "payload": [1, 2]},
])
def test_event_from_dict_malformed(row):
    with pytest.raises(MalformedEvent):
        ChangeEvent.from_dict(row)


# ---------- dispatcher ----------

def test_dispatcher_routes_by_entity_and_op():
    seen = []
    d = EventDispatcher({
        (Entity.SHIFT, Op.UPDATE): lambda e: seen.append(("shift-upd", e.entity_id)),
        (Entity.SWAP, Op.DELETE): lambda e: seen.append(("swap-del", e.entity_id)),
    })
    assert d.dispatch(_ev(1)) is True
    assert d.dispatch(_ev(2, op=Op.DELETE, entity=Entity.SWAP)) is True
    assert d.dispatch(_ev(3, op=Op.CREATE)) is False   # no handler
    assert seen == [("shift-upd", 1), ("swap-del", 2)]


def test_dispatcher_ignores_duplicates_but_not_new_versions():
    calls = []
    d = EventDispatcher({(Entity.SHIFT, Op.UPDATE): calls.append})
    assert d.dispatch_many([_ev(1), _ev(1), _ev(1, updated_at="2031-01-02T00:00:00")]) == 2
    assert len(calls) == 2


def test_dispatcher_bounded_memory():
    d = EventDispatcher({(Entity.SHIFT, Op.UPDATE): lambda e: None}, dedup=ProcessedEventLRU(2))
    for i in range(10):
        d.dispatch(_ev(i))
    assert len(d.dedup) == 2
    # evicted keys are processed again
    assert d.dispatch(_ev(0)) is True


# ---------- feed ----------

def test_services_write_feed_in_order(make_user):
    mgr = make_user("boss", role="MANAGER")
    emp = make_user("emp", manager=mgr)
    s = shift_service.assign_shift(emp.id, _d(2), "PRIMARY")
    lr = leave_service.apply_leave(emp.id, "PAID", _d(5), _d(6))
    leave_service.approve_leave(lr.id, mgr.id)

    rows = changes_after(0)
    assert [(r.entity, r.op) for r in rows] == [
        ("SHIFT", "CREATE"), ("LEAVE", "CREATE"), ("LEAVE", "UPDATE"), ("USER", "UPDATE"),
    ]
    assert rows[0].entity_id == s.id
    assert rows[3].payload["paid_leaves"] == 18
    assert [r.id for r in changes_after(rows[1].id)] == [rows[2].id, rows[3].id]
    assert [r.entity for r in changes_after(0, entity="LEAVE")] == ["LEAVE", "LEAVE"]
    assert latest_cursor() == rows[-1].id


def test_record_change_needs_id():
    with pytest.raises(ValueError):
        record_change(Entity.SHIFT, Op.DELETE, None, snapshot={})


def test_changes_after_clamps_bad_input(make_user):
    make_user()
    assert changes_after("garbage", "x") == []


def test_prune_changes(make_user):
    u = make_user()
    record_change(Entity.USER, Op.UPDATE, u)
    old = record_change(Entity.USER, Op.UPDATE, u)
    db.session.commit()
    old.created_at = datetime.utcnow() - timedelta(days=40)
    db.session.commit()
    assert prune_changes(keep_days=30) == 1
    assert ChangeEventRow.query.count() == 1
