import os

import pytest
from flask_jwt_extended import create_access_token

from oncall_api import create_app
from oncall_api.extensions import db
from oncall_api.models.leave import LeaveRequest, LEAVE_APPROVED
from oncall_api.models.shift import Shift, STATUS_SCHEDULED
from oncall_api.models.user import User, ROLE_EMPLOYEE

PASSWORD = "secret1"


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    app.config["TESTING"] = True
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    seq = {"n": 0}

    def _make(username=None, role=ROLE_EMPLOYEE, manager=None, **kw):
        seq["n"] += 1
        username = username or f"user{seq['n']}"
        u = User(
            username=username,
            email=f"{username}@test.local",
            first_name=username.title(),
            last_name="Test",
            role=role,
            manager_id=manager.id if manager else None,
            **kw,
        )
        u.set_password(PASSWORD)
        db.session.add(u)
        db.session.commit()
        return u

    return _make


@pytest.fixture
def make_shift(app):
    def _make(user, day, role="PRIMARY", status=STATUS_SCHEDULED):
        s = Shift(user_id=user.id if user else None, date=day, on_call_role=role, status=status)
        db.session.add(s)
        db.session.commit()
        return s

    return _make


@pytest.fixture
def make_leave(app):
    def _make(user, start, end, type="PAID", status=LEAVE_APPROVED):
        lr = LeaveRequest(user_id=user.id, start_date=start, end_date=end, type=type, status=status)
        db.session.add(lr)
        db.session.commit()
        return lr

    return _make


@pytest.fixture
def headers_for(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id), additional_claims={"roles": user.role_codes()})
        return {"Authorization": f"Bearer {token}"}

    return _headers
