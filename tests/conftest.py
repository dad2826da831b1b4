from datetime import datetime, timedelta

import pytest

from app import create_app
from config import Config, engine_options
from extensions import db
from models.gem import GemWallet
from models.topic import Subject, Topic
from models.user import User, UserStats

NOW = datetime(2026, 3, 14, 9, 30)


@pytest.fixture
def app(tmp_path):
    db_uri = f"sqlite:///{tmp_path / 'studylog-test.db'}"

    class TestConfig(Config):
        TESTING = True
        SECRET_KEY = "test-secret"
        SQLALCHEMY_DATABASE_URI = db_uri
        SQLALCHEMY_ENGINE_OPTIONS = engine_options(db_uri, 5)
        SCHEDULER_ENABLED = False
        DAILY_REVIEW_CAP = 10
        BCRYPT_LOG_ROUNDS = 4

    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def session(app):
    with app.app_context():
        yield db.session


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(email=None, wallet=None, **stats):
        counter["n"] += 1
        user = User(email=email or f"learner{counter['n']}@example.com", password="not-a-hash")
        session.add(user)
        session.flush()
        session.add(UserStats(user_id=user.id, total_xp=stats.get("total_xp", 0), prestige_points=0,
                              current_streak=stats.get("current_streak", 0),
                              longest_streak=stats.get("longest_streak", 0),
                              last_study_date=stats.get("last_study_date")))
        session.add(GemWallet(user_id=user.id, **(wallet or {})))
        session.commit()
        return user

    return _make


@pytest.fixture
def make_subject(session):
    def _make(user, gem_type="emerald", name=None):
        subject = Subject(user_id=user.id, name=name or f"{gem_type} subject", gem_type=gem_type)
        session.add(subject)
        session.commit()
        return subject

    return _make


@pytest.fixture
def make_topic(session):
    counter = {"n": 0}

    def _make(user, subject, column="backlog", difficulty="medium", importance="medium",
              next_review_at=None, purchased=False, created_at=None):
        counter["n"] += 1
        topic = Topic(
            user_id=user.id,
            subject_id=subject.id,
            title=f"Topic {counter['n']}",
            difficulty=difficulty,
            importance=importance,
            column_name=column,
            next_review_at=next_review_at,
            purchased=purchased,
            created_at=created_at or NOW - timedelta(days=30) + timedelta(minutes=counter["n"]),
        )
        session.add(topic)
        session.commit()
        return topic

    return _make
