# lunaexecutor/blueprints/chat.py
import logging
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user
from lunaexecutor import socketio
from lunaexecutor.errors import StorageError
from lunaexecutor.relay import CHAT_NAMESPACE, Principal
from lunaexecutor.repository import get_repository

chat_bp = Blueprint('chat', __name__)

logger = logging.getLogger(__name__)


def _relay():
    return current_app.extensions['chat_relay']


# --- HISTORY API ---
@chat_bp.route('/chat-history')
def chat_history():
    try:
        messages = get_repository().get_chat_history(current_app.config['CHAT_HISTORY_LIMIT'])
    except StorageError as e:
        return jsonify({'error': str(e)}), 500
    return jsonify([message.to_dict() for message in messages])


# --- WEBSOCKET HANDLERS ---
@socketio.on('connect', namespace=CHAT_NAMESPACE)
def handle_connect(auth=None):
    if current_user.is_authenticated:
        principal = Principal.from_user(current_user)
    elif current_app.config['CHAT_ALLOW_ANONYMOUS']:
        principal = Principal.anonymous()
    else:
        logger.info("Refusing anonymous chat connection %s", request.sid)
        return False
    _relay().connect(request.sid, principal)


@socketio.on('disconnect', namespace=CHAT_NAMESPACE)
def handle_disconnect(reason=None):
    _relay().disconnect(request.sid)


@socketio.on('message', namespace=CHAT_NAMESPACE)
def handle_message(data):
    _relay().receive(request.sid, data)


@socketio.on('json', namespace=CHAT_NAMESPACE)
def handle_json(data):
    _relay().receive(request.sid, data)
