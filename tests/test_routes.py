from datetime import timedelta

import pytest

from extensions import db
from models import utcnow
from models.gem import GemWallet
from models.topic import Topic


@pytest.fixture
def logged_in(client):
    resp = client.post("/auth/register", json={"email": "ada@example.com", "password": "correct-horse",
                                               "name": "Ada"})
    assert resp.status_code == 201
    return resp.get_json()


def _subject(client, gem_type="emerald"):
    return client.post("/subjects", json={"name": f"{gem_type} studies", "gem_type": gem_type}).get_json()


def _topic(client, subject, **fields):
    body = {"title": "Limits", "subject_id": subject["id"], **fields}
    resp = client.post("/topics", json=body)
    assert resp.status_code == 201
    return resp.get_json()


def _fund(app, user_id, **gems):
    with app.app_context():
        wallet = db.session.get(GemWallet, user_id)
        for gem, amount in gems.items():
            setattr(wallet, gem, amount)
        db.session.commit()


def _master(app, topic_id):
    with app.app_context():
        topic = db.session.get(Topic, topic_id)
        topic.column_name = "mastered"
        db.session.commit()


def test_endpoints_require_login(client):
    assert client.get("/topics").status_code == 401
    assert client.post("/splendor/purchase/1").status_code == 401


def test_register_login_logout(client, logged_in):
    assert client.get("/auth/me").get_json()["email"] == "ada@example.com"
    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401

    bad = client.post("/auth/login", json={"email": "ada@example.com", "password": "wrong-pass"})
    assert bad.status_code == 401
    good = client.post("/auth/login", json={"email": "ada@example.com", "password": "correct-horse"})
    assert good.status_code == 200


def test_duplicate_registration(client, logged_in):
    resp = client.post("/auth/register", json={"email": "ada@example.com", "password": "another-pass"})
    assert resp.status_code == 409


def test_register_creates_wallet_and_stats(client, logged_in):
    assert client.get("/splendor/wallet").get_json() == {"emerald": 0, "sapphire": 0, "ruby": 0, "diamond": 0}
    stats = client.get("/stats").get_json()
    assert stats["current_streak"] == 0 and stats["prestige_points"] == 0


def test_topic_validation(client, logged_in):
    subject = _subject(client)
    assert client.post("/subjects", json={"name": "x", "gem_type": "gold"}).status_code == 400
    assert client.post("/topics", json={"title": "", "subject_id": subject["id"]}).status_code == 400
    assert client.post("/topics", json={"title": "t", "subject_id": subject["id"],
                                        "difficulty": "brutal"}).status_code == 400
    assert client.post("/topics", json={"title": "t", "subject_id": 999}).status_code == 404


def test_new_topic_carries_its_gem_cost(client, logged_in):
    topic = _topic(client, _subject(client), difficulty="high", importance="high")
    assert topic["column"] == "backlog"
    assert topic["gem_cost"] == {"emerald": 3, "sapphire": 2, "ruby": 2, "diamond": 1}


def test_review_moves_topic_into_reviewing(client, logged_in):
    topic = _topic(client, _subject(client, "ruby"))
    resp = client.post("/reviews", json={"topic_id": topic["id"], "score": 2})
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["topic"]["column"] == "reviewing"
    assert data["topic"]["next_review_at"] is not None
    assert data["gems_earned"] == {"ruby": 1}

    upcoming = client.get("/reviews/upcoming").get_json()
    assert [t["id"] for t in upcoming] == [topic["id"]]
    history = client.get(f"/reviews/history/{topic['id']}").get_json()
    assert history[0]["from_column"] == "backlog" and history[0]["score"] == 2


def test_review_rejects_bad_score(client, logged_in):
    topic = _topic(client, _subject(client))
    assert client.post("/reviews", json={"topic_id": topic["id"], "score": 9}).status_code == 400
    assert client.post("/reviews", json={"topic_id": topic["id"], "score": "x"}).status_code == 400


def test_moving_out_of_reviewing_clears_due_date(client, logged_in):
    topic = _topic(client, _subject(client))
    client.post("/reviews", json={"topic_id": topic["id"], "score": 3})

    resp = client.patch(f"/topics/{topic['id']}", json={"column": "today"})

    assert resp.status_code == 200
    assert resp.get_json()["next_review_at"] is None
    assert client.patch(f"/topics/{topic['id']}", json={"column": "reviewing"}).status_code == 400


def test_purchase_flow(app, client, logged_in):
    subject = _subject(client)
    topic = _topic(client, subject, difficulty="low", importance="medium")
    _master(app, topic["id"])
    _fund(app, logged_in["id"], emerald=2, sapphire=1)

    quote = client.get(f"/splendor/card/{topic['id']}").get_json()
    assert quote["effective_cost"] == {"emerald": 1, "sapphire": 1, "ruby": 0, "diamond": 0}
    assert quote["purchasable"] is True

    resp = client.post(f"/splendor/purchase/{topic['id']}")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["wallet"] == {"emerald": 1, "sapphire": 0, "ruby": 0, "diamond": 0}
    assert data["topic"]["purchased"] is True
    assert data["transaction"]["gems"] == {"emerald": 1, "sapphire": 1, "ruby": 0, "diamond": 0}

    again = client.post(f"/splendor/purchase/{topic['id']}")
    assert again.status_code == 409
    assert again.get_json()["kind"] == "already_purchased"

    discounts = client.get("/splendor/discounts").get_json()
    assert discounts[0]["discount"]["emerald"] == 1
    txns = client.get("/splendor/transactions").get_json()
    assert txns["total"] == 1


def test_purchase_errors(app, client, logged_in):
    subject = _subject(client)
    unfinished = _topic(client, subject)
    resp = client.post(f"/splendor/purchase/{unfinished['id']}")
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "not_eligible"

    _master(app, unfinished["id"])
    resp = client.post(f"/splendor/purchase/{unfinished['id']}")
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["kind"] == "insufficient_funds"
    assert body["shortfall"] == ["emerald", "sapphire", "ruby"]

    assert client.post("/splendor/purchase/4242").status_code == 404


def test_purchased_topics_are_locked(app, client, logged_in):
    topic = _topic(client, _subject(client), difficulty="low", importance="low")
    _master(app, topic["id"])
    _fund(app, logged_in["id"], emerald=1)
    assert client.post(f"/splendor/purchase/{topic['id']}").status_code == 200

    assert client.patch(f"/topics/{topic['id']}", json={"title": "Renamed"}).status_code == 409


def test_overview(client, logged_in):
    data = client.get("/splendor/overview").get_json()
    assert data["wallet"]["emerald"] == 0
    assert data["prestige_points"] == 0
    assert data["completed_nobles"] == 0
    assert len(data["nobles"]) == len(client.get("/splendor/nobles").get_json())


def _place(app, user_id, subject_id, column, count, next_review_at=None):
    with app.app_context():
        for n in range(count):
            db.session.add(Topic(user_id=user_id, subject_id=subject_id, title=f"{column} {n}",
                                 column_name=column, next_review_at=next_review_at))
        db.session.commit()


def _review_into_today(client, topic_id, score):
    resp = client.post("/reviews", json={"topic_id": topic_id, "score": score})
    assert resp.status_code == 201
    data = resp.get_json()
    if data["topic"]["column"] == "reviewing":
        assert client.patch(f"/topics/{topic_id}", json={"column": "today"}).status_code == 200
    return data


def test_topic_rejects_non_numeric_subject_id(client, logged_in):
    resp = client.post("/topics", json={"title": "Limits", "subject_id": "abc"})
    assert resp.status_code == 400


def test_mastered_cannot_be_set_by_hand(app, client, logged_in):
    topic = _topic(client, _subject(client))

    assert client.patch(f"/topics/{topic['id']}", json={"column": "mastered"}).status_code == 400

    _fund(app, logged_in["id"], emerald=9, sapphire=9, ruby=9, diamond=9)
    resp = client.post(f"/splendor/purchase/{topic['id']}")
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "not_eligible"


def test_mastery_is_awarded_once_per_climb(client, logged_in):
    topic = _topic(client, _subject(client, "ruby"))
    for _ in range(2):
        _review_into_today(client, topic["id"], 5)
    mastered = _review_into_today(client, topic["id"], 5)
    assert mastered["topic"]["column"] == "mastered"
    assert mastered["xp_awarded"] == 40

    for _ in range(3):
        moved = client.patch(f"/topics/{topic['id']}", json={"column": "backlog"}).get_json()
        assert moved["mastery_count"] == 0
        data = client.post("/reviews", json={"topic_id": topic["id"], "score": 1}).get_json()
        assert data["topic"]["column"] == "reviewing"
        assert data["xp_awarded"] == 10
        assert data["gems_earned"] == {"ruby": 1}

    # 1 + 1 + 2 for the climb, then 1 per weak review
    assert client.get("/splendor/wallet").get_json()["ruby"] == 7
    assert client.get("/stats").get_json()["total_xp"] == 90


def test_due_today_never_exceeds_the_cap(app, client, logged_in):
    subject = _subject(client)
    _place(app, logged_in["id"], subject["id"], "today", 10)
    _place(app, logged_in["id"], subject["id"], "reviewing", 5,
           next_review_at=utcnow() - timedelta(hours=1))

    due = client.get("/reviews/due-today").get_json()

    assert len(due) <= app.config["DAILY_REVIEW_CAP"]
    assert {t["column"] for t in due} == {"today"}

    held_back = client.get("/topics?column=reviewing").get_json()[0]
    resp = client.post("/reviews", json={"topic_id": held_back["id"], "score": 4})
    assert resp.status_code == 409
    resp = client.patch(f"/topics/{held_back['id']}", json={"column": "today"})
    assert resp.status_code == 409
    assert len(client.get("/reviews/due-today").get_json()) == 10
