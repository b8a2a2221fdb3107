"""
Tests for application wiring: health check, error mapping, headers and CLI
"""
import os

from sqlalchemy.exc import OperationalError

from models import Project, db


def test_health(client):
    res = client.get('/api/health')

    assert res.status_code == 200
    assert res.get_json() == {'status': 'ok', 'database': 'connected'}


def test_unknown_route_is_json(client):
    res = client.get('/api/nothing-here')

    assert res.status_code == 404
    assert res.get_json()['error']['kind'] == 'not_found'


def test_wrong_method_is_json(client):
    res = client.delete('/api/projects')

    assert res.status_code == 405
    assert res.get_json()['success'] is False


def test_security_headers(client):
    res = client.get('/api/health')

    assert res.headers['X-Content-Type-Options'] == 'nosniff'
    assert res.headers['X-Frame-Options'] == 'DENY'


def test_cors_allows_configured_origin(client):
    res = client.get('/api/health', headers={'Origin': 'http://localhost:5173'})
    assert res.headers['Access-Control-Allow-Origin'] == 'http://localhost:5173'

    res = client.get('/api/health', headers={'Origin': 'https://evil.example'})
    assert 'Access-Control-Allow-Origin' not in res.headers


def test_storage_failure_is_generic(client, owner, headers_for, monkeypatch):
    def broken_commit():
        raise OperationalError('INSERT INTO project', {}, Exception('disk I/O error'))

    headers = headers_for(owner)
    monkeypatch.setattr(db.session, 'commit', broken_commit)

    res = client.post(
        '/api/projects',
        json={
            'title': 'Website redesign',
            'description': 'Refresh the visual style of a corporate site.',
            'category': 'design',
            'budget': 30000,
        },
        headers=headers,
    )

    assert res.status_code == 500
    error = res.get_json()['error']
    assert error['kind'] == 'storage_error'
    assert 'disk' not in error['message']
    assert Project.query.count() == 0


def test_forbidden_is_written_to_security_log(app, client, freelancer, headers_for):
    client.post(
        '/api/projects',
        json={
            'title': 'Website redesign',
            'description': 'Refresh the visual style of a corporate site.',
            'category': 'design',
            'budget': 30000,
        },
        headers=headers_for(freelancer),
    )
    for handler in app.extensions['security_logger'].logger.handlers:
        handler.flush()

    with open(os.path.join(app.config['SECURITY_LOG_DIR'], 'security.log'), encoding='utf-8') as f:
        content = f.read()
    assert '"event_type": "permission_denied"' in content
    assert '"request_path": "/api/projects"' in content


def test_init_db_command(app):
    db.drop_all()

    result = app.test_cli_runner().invoke(args=['init-db'])

    assert 'Database tables created.' in result.output
    assert Project.query.count() == 0
