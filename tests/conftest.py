"""
Pytest fixtures for the teaching contract engine.

Provides:
- an app on in-memory SQLite with a fixed clock (2025-03-01 09:00)
- a seeded catalog: two departments, lecturers, admins, courses, candidates
- ``client_for(user)`` for requests made as a logged-in user
"""
from datetime import datetime
from io import BytesIO
from types import SimpleNamespace

import pytest
from flask import g
from flask_login import FlaskLoginClient
from werkzeug.datastructures import FileStorage

from teaching_contracts import create_app, db
from teaching_contracts.clock import FixedClock
from teaching_contracts.config import TestConfig
from teaching_contracts.models.candidate import Candidate
from teaching_contracts.models.catalog import ClassGroup, Course
from teaching_contracts.models.user import (
    ADMIN, LECTURER, MANAGEMENT, SUPERADMIN, Department, Role, User,
)
from teaching_contracts.services import contracts

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 24
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 28

NOW = datetime(2025, 3, 1, 9, 0, 0)


class LoginClient(FlaskLoginClient):
    """Test client that loads its own user on every request.

    Requests reuse the app context held by the ``app`` fixture, so the user
    Flask-Login cached on ``g`` by an earlier request is dropped first.
    """

    def open(self, *args, **kwargs):
        g.pop("_login_user", None)
        return super().open(*args, **kwargs)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def app(tmp_path, clock):
    class Config(TestConfig):
        UPLOAD_FOLDER = str(tmp_path / "uploads")

    app = create_app(Config, clock=clock)
    app.test_client_class = LoginClient
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def seed(app):
    roles = {name: Role(name=name) for name in (LECTURER, ADMIN, MANAGEMENT, SUPERADMIN)}
    cs = Department(name="Computer Science")
    biz = Department(name="Digital Business")
    db.session.add_all(list(roles.values()) + [cs, biz])
    db.session.flush()

    def user(username, role, department=None, display_name=None):
        u = User(
            username=username,
            email=f"{username}@university.edu.kh",
            display_name=display_name,
            role=roles[role],
            department=department,
        )
        db.session.add(u)
        return u

    data = SimpleNamespace(
        cs=cs,
        biz=biz,
        lecturer=user("dara", LECTURER, display_name="Dr. Sok Dara"),
        other_lecturer=user("sophea", LECTURER, display_name="Ms. Chan Sophea"),
        admin=user("admin_cs", ADMIN, cs),
        biz_admin=user("admin_biz", ADMIN, biz),
        management=user("mgmt_cs", MANAGEMENT, cs),
        superadmin=user("root", SUPERADMIN),
    )
    data.algorithms = Course(course_code="CS201", course_name="Algorithms", dept_id=cs.id, hours=45)
    data.databases = Course(course_code="CS202", course_name="Databases", dept_id=cs.id, hours=30)
    data.marketing = Course(course_code="DB101", course_name="Digital Marketing", dept_id=biz.id, hours=30)
    data.group = ClassGroup(name="CS Gen 10 G1", dept_id=cs.id, academic_year="2024-2025", term="1")
    db.session.add_all([data.algorithms, data.databases, data.marketing, data.group])
    db.session.add_all([
        Candidate(full_name="Sok Dara", email="dara@university.edu.kh", hourly_rate="$25"),
        Candidate(full_name="Someone Else", email="sophea@university.edu.kh", hourly_rate="18 USD"),
    ])
    db.session.commit()
    return data


@pytest.fixture
def make_contract(seed):
    def _make(lecturer=None, creator=None, courses=None, **header):
        payload = {
            'lecturer_user_id': (lecturer or seed.lecturer).id,
            'academic_year': header.pop('academic_year', '2024-2025'),
            'term': header.pop('term', '1'),
            'courses': courses or [
                {'course_id': seed.algorithms.id, 'class_id': seed.group.id, 'hours': 40},
            ],
        }
        payload.update(header)
        return contracts.create_contract(creator or seed.superadmin, payload)
    return _make


@pytest.fixture
def client_for(app):
    def _client(user):
        return app.test_client(user=user)
    return _client


def image_upload(data=PNG_BYTES, filename="signature.png", content_type="image/png"):
    return FileStorage(stream=BytesIO(data), filename=filename, content_type=content_type)
