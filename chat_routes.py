from flask import Blueprint, current_app, g, jsonify, request

from auth import token_required
from schemas import ChatCreatePayload, MessagePayload, MessagesQuery, parse

chat_bp = Blueprint('chat', __name__, url_prefix='/api/chat')


def chat_service():
    return current_app.extensions['chat_service']


@chat_bp.route('/create', methods=['POST'])
@token_required
def create_chat():
    payload = parse(ChatCreatePayload, request.get_json(silent=True))
    chat, created = chat_service().get_or_create_chat(g.principal, payload.project_id, payload.freelancer_id)
    return jsonify({'success': True, 'chat': chat.to_dict(viewer_id=g.principal.id)}), 201 if created else 200


@chat_bp.route('/my', methods=['GET'])
@token_required
def my_chats():
    chats = chat_service().list_chats(g.principal)
    return jsonify({'success': True, 'chats': [c.to_dict(viewer_id=g.principal.id) for c in chats]})


@chat_bp.route('/<int:chat_id>/messages', methods=['GET'])
@token_required
def get_messages(chat_id):
    query = parse(MessagesQuery, request.args.to_dict())
    messages = chat_service().get_messages(g.principal, chat_id, query.after_id)
    return jsonify({'success': True, 'messages': [m.to_dict() for m in messages]})


@chat_bp.route('/<int:chat_id>/messages', methods=['POST'])
@token_required
def send_message(chat_id):
    payload = parse(MessagePayload, request.get_json(silent=True))
    message = chat_service().send_message(g.principal, chat_id, payload)
    return jsonify({'success': True, 'message': message.to_dict()}), 201
