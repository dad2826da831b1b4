from flask import Blueprint, jsonify
from flask_login import login_required, current_user

from extensions import db
from services.gem_engine import ensure_stats

stats_bp = Blueprint("stats", __name__, url_prefix="/stats")


@stats_bp.get("")
@login_required
def get_stats():
    stats = ensure_stats(db.session, current_user.id)
    db.session.commit()
    return jsonify(stats.to_dict())
