from flask import Blueprint, current_app, g, jsonify, request

from auth import token_optional, token_required
from schemas import ProjectCreatePayload, ProjectQuery, ResponsePayload, ResponseStatusPayload, parse

projects_bp = Blueprint('projects', __name__, url_prefix='/api/projects')


def bidding_service():
    return current_app.extensions['bidding_service']


@projects_bp.route('', methods=['GET'])
def list_projects():
    query = parse(ProjectQuery, request.args.to_dict())
    result = bidding_service().list_projects(query)
    return jsonify({
        'success': True,
        'projects': [p.to_dict() for p in result['projects']],
        'total': result['total'],
        'page': result['page'],
        'pages': result['pages'],
    })


@projects_bp.route('/<int:project_id>', methods=['GET'])
@token_optional
def get_project(project_id):
    project = bidding_service().get_project(project_id)
    viewer_id = g.principal.id if g.principal else None
    return jsonify({'success': True, 'project': project.to_dict(viewer_id=viewer_id)})


@projects_bp.route('', methods=['POST'])
@token_required
def create_project():
    payload = parse(ProjectCreatePayload, request.get_json(silent=True))
    project = bidding_service().create_project(g.principal, payload)
    return jsonify({'success': True, 'project': project.to_dict(viewer_id=g.principal.id)}), 201


@projects_bp.route('/<int:project_id>/respond', methods=['POST'])
@token_required
def respond_to_project(project_id):
    payload = parse(ResponsePayload, request.get_json(silent=True))
    response = bidding_service().submit_response(project_id, g.principal, payload)
    return jsonify({
        'success': True,
        'message': 'Response submitted',
        'response': response.to_dict(),
    }), 201


@projects_bp.route('/<int:project_id>/responses/<int:response_id>', methods=['PATCH'])
@token_required
def update_response_status(project_id, response_id):
    payload = parse(ResponseStatusPayload, request.get_json(silent=True))
    response = bidding_service().update_response_status(project_id, response_id, g.principal, payload.status)
    return jsonify({
        'success': True,
        'message': f'Response {response.status}',
        'response': response.to_dict(),
    })


@projects_bp.route('/my/responses', methods=['GET'])
@token_required
def my_responses():
    pairs = bidding_service().list_responses_for_user(g.principal)
    responses = []
    for response, project in pairs:
        item = response.to_dict()
        item['project'] = project
        responses.append(item)
    return jsonify({'success': True, 'responses': responses})


@projects_bp.route('/client/my-projects', methods=['GET'])
@token_required
def my_projects():
    projects = bidding_service().list_projects_for_owner(g.principal)
    return jsonify({
        'success': True,
        'projects': [p.to_dict(viewer_id=g.principal.id) for p in projects],
    })
