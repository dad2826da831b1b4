from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user

from extensions import db, bcrypt
from models.gem import GemWallet
from models.user import User, UserStats

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def serialize_user(user):
    return {"id": user.id, "email": user.email, "name": user.name}


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or request.form
    email = (data.get("email") or "").strip().lower()
    pw = data.get("password") or ""
    if not email or not pw:
        return jsonify({"error": "email and password are required"}), 400
    if len(pw) < 8:
        return jsonify({"error": "Password must be at least 8 characters"}), 400
    if User.query.filter_by(email=email).first():
        return jsonify({"error": "Email already registered"}), 409
    hashed_pw = bcrypt.generate_password_hash(pw).decode("utf-8")
    user = User(email=email, password=hashed_pw, name=(data.get("name") or "").strip() or None)
    db.session.add(user)
    db.session.flush()
    db.session.add(UserStats(user_id=user.id, total_xp=0, prestige_points=0,
                             current_streak=0, longest_streak=0))
    db.session.add(GemWallet(user_id=user.id, emerald=0, sapphire=0, ruby=0, diamond=0))
    db.session.commit()
    login_user(user)
    return jsonify(serialize_user(user)), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or request.form
    email = (data.get("email") or "").strip().lower()
    pw = data.get("password") or ""
    user = User.query.filter_by(email=email).first()
    if user and bcrypt.check_password_hash(user.password, pw):
        login_user(user)
        return jsonify(serialize_user(user))
    return jsonify({"error": "Invalid email or password"}), 401


@auth_bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(serialize_user(current_user))
