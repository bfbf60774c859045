# lunaexecutor/blueprints/main.py
import logging
from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from pydantic import ValidationError
from lunaexecutor.errors import StorageError
from lunaexecutor.repository import get_repository
from lunaexecutor.schemas import ExecutionReport, first_error

main_bp = Blueprint('main', __name__)

logger = logging.getLogger(__name__)


@main_bp.route('/')
def home():
    return jsonify({'name': 'LunaExecutor', 'status': 'healthy'})


@main_bp.route('/user-stats')
@login_required
def user_stats():
    try:
        stats = get_repository().get_user_stats(current_user.id)
    except StorageError as e:
        return jsonify({'error': str(e)}), 500
    return jsonify([stat.to_dict() for stat in stats])


@main_bp.route('/user-stats', methods=['POST'])
@login_required
def record_execution():
    try:
        report = ExecutionReport.model_validate(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({'error': first_error(e)}), 400
    try:
        stat = get_repository().record_execution(current_user.id, report.success)
    except StorageError as e:
        return jsonify({'error': str(e)}), 400
    logger.debug("Execution recorded for user %s (success=%s)", current_user.id, report.success)
    return jsonify(stat.to_dict()), 201
