from flask import Blueprint, current_app, request, jsonify
from flask_login import login_required, current_user

from constants import BACKLOG, EDITABLE_STAGES, LEVELS, MASTERED, REVIEWING, STAGES, TODAY
from extensions import db
from models.topic import Subject, Topic
from services.gem_cost import GEM_TYPES

topics_bp = Blueprint("topics", __name__)


def _own_topic(topic_id):
    return Topic.query.filter_by(id=topic_id, user_id=current_user.id).first()


def _level(value, default="medium"):
    value = (value or default).strip().lower()
    return value if value in LEVELS else None


@topics_bp.get("/subjects")
@login_required
def list_subjects():
    subjects = Subject.query.filter_by(user_id=current_user.id).order_by(Subject.name.asc()).all()
    return jsonify([s.to_dict() for s in subjects])


@topics_bp.post("/subjects")
@login_required
def create_subject():
    data = request.get_json(silent=True) or request.form
    name = (data.get("name") or "").strip()
    gem_type = (data.get("gem_type") or "emerald").strip().lower()
    if not name:
        return jsonify({"error": "name is required"}), 400
    if len(name) > 64:
        return jsonify({"error": "name is too long"}), 400
    if gem_type not in GEM_TYPES:
        return jsonify({"error": f"gem_type must be one of {', '.join(GEM_TYPES)}"}), 400
    subject = Subject(user_id=current_user.id, name=name, gem_type=gem_type,
                      color=(data.get("color") or "#7C3AED"))
    db.session.add(subject)
    db.session.commit()
    return jsonify(subject.to_dict()), 201


@topics_bp.get("/topics")
@login_required
def list_topics():
    q = Topic.query.filter_by(user_id=current_user.id)
    subject_id = request.args.get("subject_id", type=int)
    column = request.args.get("column") or ""
    if subject_id:
        q = q.filter(Topic.subject_id == subject_id)
    if column:
        if column not in STAGES:
            return jsonify({"error": "Unknown column"}), 400
        q = q.filter(Topic.column_name == column)
    topics = q.order_by(Topic.created_at.asc(), Topic.id.asc()).all()
    return jsonify([t.to_dict() for t in topics])


@topics_bp.post("/topics")
@login_required
def create_topic():
    data = request.get_json(silent=True) or request.form
    title = (data.get("title") or "").strip()
    try:
        subject_id = int(data.get("subject_id") or 0)
    except (TypeError, ValueError):
        return jsonify({"error": "subject_id must be an integer"}), 400
    difficulty = _level(data.get("difficulty"))
    importance = _level(data.get("importance"))
    if not title:
        return jsonify({"error": "title is required"}), 400
    if difficulty is None or importance is None:
        return jsonify({"error": "difficulty and importance must be high, medium or low"}), 400
    subject = Subject.query.filter_by(id=subject_id, user_id=current_user.id).first()
    if not subject:
        return jsonify({"error": "Subject not found"}), 404
    topic = Topic(
        user_id=current_user.id,
        subject_id=subject.id,
        title=title,
        notes=(data.get("notes") or "").strip(),
        difficulty=difficulty,
        importance=importance,
        column_name=BACKLOG,
    )
    db.session.add(topic)
    db.session.commit()
    return jsonify(topic.to_dict()), 201


@topics_bp.get("/topics/<int:topic_id>")
@login_required
def get_topic(topic_id):
    topic = _own_topic(topic_id)
    if not topic:
        return jsonify({"error": "Topic not found"}), 404
    return jsonify(topic.to_dict())


@topics_bp.patch("/topics/<int:topic_id>")
@login_required
def update_topic(topic_id):
    data = request.get_json(silent=True) or {}
    topic = _own_topic(topic_id)
    if not topic:
        return jsonify({"error": "Topic not found"}), 404
    if topic.purchased:
        return jsonify({"error": "Purchased topics are locked"}), 409

    if "title" in data:
        title = (data.get("title") or "").strip()
        if not title:
            return jsonify({"error": "title cannot be empty"}), 400
        topic.title = title
    if "notes" in data:
        topic.notes = (data.get("notes") or "").strip()
    for attr in ("difficulty", "importance"):
        if attr in data:
            level = _level(data.get(attr))
            if level is None:
                return jsonify({"error": f"{attr} must be high, medium or low"}), 400
            setattr(topic, attr, level)
    if "column" in data:
        column = data.get("column")
        if column not in EDITABLE_STAGES:
            return jsonify({"error": f"column must be one of {', '.join(EDITABLE_STAGES)}"}), 400
        if column == TODAY and topic.column_name != TODAY:
            in_today = Topic.query.filter_by(user_id=current_user.id, column_name=TODAY).count()
            if in_today >= current_app.config["DAILY_REVIEW_CAP"]:
                return jsonify({"error": "Today is full, daily review cap reached"}), 409
        if topic.column_name == REVIEWING:
            topic.next_review_at = None
        if topic.column_name == MASTERED:
            # mastery has to be earned again
            topic.mastery_count = 0
        topic.column_name = column

    db.session.commit()
    return jsonify(topic.to_dict())

