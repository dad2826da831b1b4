from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from constants import MASTERED
from extensions import db
from models.topic import Topic
from services.gem_engine import (
    PurchaseError,
    can_afford,
    discounts_by_subject,
    ensure_stats,
    ensure_wallet,
    get_effective_cost,
    list_transactions,
    purchase_card,
    wallet_balance,
)
from services.nobles import noble_progress

splendor_bp = Blueprint("splendor", __name__, url_prefix="/splendor")

PURCHASE_ERROR_STATUS = {
    PurchaseError.NOT_FOUND: 404,
    PurchaseError.ALREADY_PURCHASED: 409,
    PurchaseError.NOT_ELIGIBLE: 400,
    PurchaseError.INSUFFICIENT_FUNDS: 400,
}


@splendor_bp.get("/wallet")
@login_required
def wallet():
    w = ensure_wallet(db.session, current_user.id)
    db.session.commit()
    return jsonify(w.to_dict())


@splendor_bp.get("/transactions")
@login_required
def transactions():
    limit = min(request.args.get("limit", 20, type=int) or 20, 100)
    offset = max(request.args.get("offset", 0, type=int) or 0, 0)
    rows, total = list_transactions(db.session, current_user.id, limit, offset)
    return jsonify({"transactions": [t.to_dict() for t in rows], "total": total})


@splendor_bp.get("/card/<int:topic_id>")
@login_required
def card(topic_id):
    topic = Topic.query.filter_by(id=topic_id, user_id=current_user.id).first()
    if not topic:
        return jsonify({"error": "Topic not found"}), 404
    quote = get_effective_cost(db.session, topic, current_user.id)
    affordable = can_afford(wallet_balance(db.session, current_user.id), quote.effective)
    return jsonify({
        "topic": topic.to_dict(),
        **quote.to_dict(),
        "affordable": affordable,
        "purchasable": affordable and not topic.purchased and topic.column_name == MASTERED,
        "already_purchased": bool(topic.purchased),
    })


@splendor_bp.post("/purchase/<int:topic_id>")
@login_required
def purchase(topic_id):
    result = purchase_card(db.session, current_user.id, topic_id)
    if not result.ok:
        body = {"error": result.message, "kind": result.error.value}
        if result.shortfall:
            body["shortfall"] = result.shortfall
        if result.effective_cost is not None:
            body["effective_cost"] = result.effective_cost.to_dict()
        return jsonify(body), PURCHASE_ERROR_STATUS[result.error]

    awarded = [n.to_dict() for n in noble_progress(db.session, current_user.id) if n.newly_awarded]
    return jsonify({
        "ok": True,
        "topic": result.topic.to_dict(),
        "transaction": result.transaction.to_dict(),
        "wallet": result.wallet.to_dict(),
        "prestige_awarded": result.prestige_awarded,
        "effective_cost": result.effective_cost.to_dict(),
        "nobles_awarded": awarded,
    })


@splendor_bp.get("/nobles")
@login_required
def nobles():
    return jsonify([n.to_dict() for n in noble_progress(db.session, current_user.id)])


@splendor_bp.get("/discounts")
@login_required
def discounts():
    return jsonify(discounts_by_subject(db.session, current_user.id))


@splendor_bp.get("/overview")
@login_required
def overview():
    w = ensure_wallet(db.session, current_user.id)
    stats = ensure_stats(db.session, current_user.id)
    db.session.commit()
    progress = noble_progress(db.session, current_user.id)
    return jsonify({
        "wallet": w.to_dict(),
        "prestige_points": stats.prestige_points,
        "nobles": [n.to_dict() for n in progress],
        "completed_nobles": sum(1 for n in progress if n.completed),
    })
