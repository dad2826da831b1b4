from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from constants import MASTERED, REVIEWING, TODAY
from extensions import db
from models.topic import ReviewEntry, Topic
from services.study import record_review

reviews_bp = Blueprint("reviews", __name__, url_prefix="/reviews")


@reviews_bp.post("")
@login_required
def create_review():
    data = request.get_json(silent=True) or request.form
    try:
        topic_id = int(data.get("topic_id", 0))
        score = int(data.get("score", 0))
    except (TypeError, ValueError):
        return jsonify({"error": "topic_id and score must be integers"}), 400
    if not 1 <= score <= 5:
        return jsonify({"error": "score must be between 1 and 5"}), 400

    topic = Topic.query.filter_by(id=topic_id, user_id=current_user.id).first()
    if not topic:
        return jsonify({"error": "Topic not found"}), 404
    if topic.column_name == MASTERED:
        return jsonify({"error": "Topic already mastered"}), 400
    if topic.column_name == REVIEWING:
        return jsonify({"error": "Topic is scheduled, review it once it reaches today"}), 409

    entry, xp, gems = record_review(db.session, topic, score)
    db.session.commit()
    return jsonify({
        "ok": True,
        "review": entry.to_dict(),
        "topic": topic.to_dict(),
        "xp_awarded": xp,
        "gems_earned": {topic.subject.gem_type: gems},
    }), 201


@reviews_bp.get("/upcoming")
@login_required
def upcoming():
    topics = Topic.query.filter(Topic.user_id == current_user.id,
                                Topic.column_name == REVIEWING,
                                Topic.next_review_at.isnot(None)) \
        .order_by(Topic.next_review_at.asc()).limit(50).all()
    return jsonify([t.to_dict() for t in topics])


@reviews_bp.get("/due-today")
@login_required
def due_today():
    """Topics in the today column. Overdue ones join it only through the capped scheduler."""
    topics = Topic.query.filter_by(user_id=current_user.id, column_name=TODAY) \
        .order_by(Topic.created_at.asc(), Topic.id.asc()).all()
    return jsonify([t.to_dict() for t in topics])


@reviews_bp.get("/history/<int:topic_id>")
@login_required
def history(topic_id):
    topic = Topic.query.filter_by(id=topic_id, user_id=current_user.id).first()
    if not topic:
        return jsonify({"error": "Topic not found"}), 404
    entries = ReviewEntry.query.filter_by(topic_id=topic.id) \
        .order_by(ReviewEntry.reviewed_at.asc(), ReviewEntry.id.asc()).all()
    return jsonify([e.to_dict() for e in entries])
