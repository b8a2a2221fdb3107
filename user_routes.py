from flask import Blueprint, current_app, g, jsonify, request

from auth import token_required
from schemas import FreelancerQuery, ProfileUpdatePayload, parse

users_bp = Blueprint('users', __name__, url_prefix='/api/users')


def user_service():
    return current_app.extensions['user_service']


@users_bp.route('/freelancers', methods=['GET'])
def list_freelancers():
    query = parse(FreelancerQuery, request.args.to_dict())
    result = user_service().list_freelancers(query)
    return jsonify({
        'success': True,
        'users': [u.to_dict() for u in result['users']],
        'total': result['total'],
        'page': result['page'],
        'pages': result['pages'],
    })


@users_bp.route('/<int:user_id>', methods=['GET'])
def get_user(user_id):
    user = user_service().get_user(user_id)
    return jsonify({'success': True, 'user': user.to_dict()})


@users_bp.route('/profile', methods=['PATCH'])
@token_required
def update_profile():
    payload = parse(ProfileUpdatePayload, request.get_json(silent=True))
    user = user_service().update_profile(g.principal, payload)
    return jsonify({
        'success': True,
        'message': 'Profile updated',
        'user': user.to_dict(include_private=True),
    })
