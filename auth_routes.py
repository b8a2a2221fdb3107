from flask import Blueprint, current_app, g, jsonify, request

from auth import issue_token, token_required
from rate_limit import attempt_limit
from schemas import LoginPayload, OAuthLoginPayload, RegisterPayload, parse

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def user_service():
    return current_app.extensions['user_service']


@auth_bp.route('/register', methods=['POST'])
@attempt_limit
def register():
    payload = parse(RegisterPayload, request.get_json(silent=True))
    user = user_service().register(payload)
    return jsonify({
        'success': True,
        'message': 'Registration successful',
        'token': issue_token(user),
        'user': user.to_dict(include_private=True),
    }), 201


@auth_bp.route('/login', methods=['POST'])
@attempt_limit
def login():
    payload = parse(LoginPayload, request.get_json(silent=True))
    user = user_service().authenticate(payload)
    return jsonify({
        'success': True,
        'message': 'Login successful',
        'token': issue_token(user),
        'user': user.to_dict(include_private=True),
    })


@auth_bp.route('/me', methods=['GET'])
@token_required
def me():
    return jsonify({'success': True, 'user': g.current_user.to_dict(include_private=True)})


@auth_bp.route('/oauth/yandex/url', methods=['GET'])
def yandex_oauth_url():
    url, state = current_app.extensions['yandex_oauth'].authorization_url()
    return jsonify({'success': True, 'url': url, 'state': state})


@auth_bp.route('/oauth/yandex/login', methods=['POST'])
def yandex_oauth_login():
    payload = parse(OAuthLoginPayload, request.get_json(silent=True))
    identity = current_app.extensions['yandex_oauth'].fetch_identity(payload.code)
    user, created = user_service().login_with_oauth(identity)
    return jsonify({
        'success': True,
        'message': 'Yandex login successful',
        'token': issue_token(user),
        'user': user.to_dict(include_private=True),
        'is_new': created,
    })
