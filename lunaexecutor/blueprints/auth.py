# lunaexecutor/blueprints/auth.py
import logging
from datetime import datetime, timezone
from flask import Blueprint, current_app, jsonify, request, url_for
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import login_user, logout_user, login_required, current_user
from pydantic import ValidationError
from lunaexecutor.errors import StorageError
from lunaexecutor.repository import get_repository
from lunaexecutor.schemas import UserRegister, UserLogin, ProfileUpdate, first_error

auth_bp = Blueprint('auth', __name__)

logger = logging.getLogger(__name__)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@auth_bp.route('/register', methods=['POST'])
def register():
    try:
        data = UserRegister.model_validate(_json_body())
    except ValidationError as e:
        return jsonify({'error': first_error(e)}), 400

    repository = get_repository()
    if repository.get_user_by_username(data.username):
        return jsonify({'error': 'Username already exists.'}), 400
    if repository.get_user_by_email(data.email):
        return jsonify({'error': 'Email address is already registered.'}), 400

    hashed_pw = generate_password_hash(data.password, method='pbkdf2:sha256')
    try:
        user = repository.create_user(data.username, data.email, hashed_pw)
    except StorageError as e:
        return jsonify({'error': str(e)}), 400

    # No mail transport: the link goes to the log for the operator to forward
    verify_link = url_for('auth.verify', token=user.verification_token, _external=True)
    logger.info("Verification link for %s: %s", user.username, verify_link)
    return jsonify(user.to_dict()), 201


@auth_bp.route('/verify/<token>')
def verify(token):
    repository = get_repository()
    user = repository.get_user_by_verification_token(token)
    if user is None:
        return jsonify({'error': 'Invalid or expired verification token.'}), 400
    try:
        repository.verify_user(user)
    except StorageError as e:
        return jsonify({'error': str(e)}), 400
    logger.info("User %s verified", user.username)
    return jsonify(user.to_dict())


@auth_bp.route('/login', methods=['POST'])
def login():
    try:
        data = UserLogin.model_validate(_json_body())
    except ValidationError as e:
        return jsonify({'error': first_error(e)}), 400

    repository = get_repository()
    user = repository.get_user_by_username(data.username)
    if not user or not check_password_hash(user.password_hash, data.password):
        logger.warning("Failed login for %s", data.username)
        return jsonify({'error': 'Invalid username or password.'}), 401

    login_user(user, remember=True)
    try:
        repository.record_login(user, datetime.now(timezone.utc))
    except StorageError:
        logger.warning("Could not record last login for %s", user.username)
    logger.info("User %s logged in", user.username)
    return jsonify(user.to_dict())


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logger.info("User %s logged out", current_user.username)
    current_app.extensions['chat_relay'].disconnect_user(current_user.id)
    logout_user()
    return '', 204


@auth_bp.route('/me')
@login_required
def me():
    return jsonify(current_user.to_dict())


@auth_bp.route('/profile', methods=['PATCH'])
@login_required
def update_profile():
    try:
        data = ProfileUpdate.model_validate(_json_body())
    except ValidationError as e:
        return jsonify({'error': first_error(e)}), 400

    repository = get_repository()
    changes = {}
    if data.username and data.username != current_user.username:
        if repository.get_user_by_username(data.username):
            return jsonify({'error': 'Username already exists.'}), 400
        changes['username'] = data.username
    if data.email and data.email != current_user.email:
        if repository.get_user_by_email(data.email):
            return jsonify({'error': 'Email address is already registered.'}), 400
        changes['email'] = data.email

    try:
        user = repository.update_user(current_user._get_current_object(), **changes)
    except StorageError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify(user.to_dict())
