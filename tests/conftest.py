from datetime import datetime

import pytest

from app import create_app
from app_services import hash_password
from config import TestConfig
from models import User, Video, db

NOW = datetime(2026, 6, 15, 12, 0, 0)


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


def _make_user(account: str, role: str) -> User:
    user = User(account=account, username=account, password=hash_password("secret"), role=role)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture()
def admin_client(app):
    _make_user("admin", "admin")
    client = app.test_client()
    resp = client.post("/login", json={"account": "admin", "password": "secret"})
    assert resp.status_code == 200
    return client


@pytest.fixture()
def user_client(app):
    _make_user("learner", "user")
    client = app.test_client()
    resp = client.post("/login", json={"account": "learner", "password": "secret"})
    assert resp.status_code == 200
    return client


def favorable_factors(**overrides) -> dict:
    factors = {
        "duration_min": 10,
        "has_cc": True,
        "has_chapters": True,
        "difficulty": "easy",
        "published_at": NOW,
        "has_sample_code": True,
        "like_ratio": 0.95,
    }
    factors.update(overrides)
    return factors


def unfavorable_factors(**overrides) -> dict:
    factors = {
        "duration_min": 60,
        "has_cc": False,
        "has_chapters": False,
        "difficulty": "hard",
        "published_at": datetime(2023, 6, 15),
        "has_sample_code": False,
        "like_ratio": 0.3,
    }
    factors.update(overrides)
    return factors


def make_video(url: str, *, bci: int = 0, **fields) -> Video:
    values = {
        "title": url.rsplit("/", 1)[-1],
        "channel": "channel",
        "duration_min": 10,
        "published_at": datetime.now(),
        "difficulty": "easy",
        "has_cc": True,
        "has_chapters": True,
        "has_sample_code": True,
        "like_ratio": 0.95,
        "tags": "[]",
    }
    values.update(fields)
    video = Video(url=url, bci=bci, **values)
    db.session.add(video)
    db.session.commit()
    return video
