import os
from datetime import date, datetime, time

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest

import app as app_module
from models import db, User

# A Wednesday
TODAY = date(2024, 5, 15)


class Clock:
    """Pins the app's notion of 'today' so date arithmetic is testable."""

    def __init__(self, monkeypatch):
        self.today = TODAY
        monkeypatch.setattr(app_module, "today_local", lambda: self.today)
        monkeypatch.setattr(app_module, "now_local", lambda: datetime.combine(self.today, time(21, 30)))

    def set(self, day):
        self.today = day


@pytest.fixture
def clock(monkeypatch):
    return Clock(monkeypatch)


@pytest.fixture
def app(clock):
    flask_app = app_module.app
    flask_app.config.update(TESTING=True)
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


def make_user(app, name, pin):
    with app.app_context():
        u = User(user=name)
        u.set_pin(pin)
        db.session.add(u)
        db.session.commit()
        return u.id


@pytest.fixture
def user_id(app):
    return make_user(app, "Aiman", "1234")


@pytest.fixture
def anon_client(app):
    return app.test_client()


@pytest.fixture
def client(app, user_id):
    c = app.test_client()
    resp = c.post("/login", json={"user": "Aiman", "pin": "1234"})
    assert resp.status_code == 200
    return c


def add_surah(client, surah_id, name, total=10, memorized=10, juz=30, **extra):
    body = {"id": surah_id, "chapter_name": name, "total_verse": total,
            "verse_memorized": memorized, "juz": juz}
    body.update(extra)
    return client.post("/murajaah/addsurah", json=body)
