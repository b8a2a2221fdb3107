"""
HTTP tests for /api/projects
"""
from models import Project, ProjectResponse


def new_project_body(**overrides):
    body = {
        'title': 'Mobile app prototype',
        'description': 'Clickable prototype for a food delivery app.',
        'category': 'design',
        'budget': 20000,
        'skills': ['figma', 'ux'],
    }
    body.update(overrides)
    return body


def test_create_project(client, owner, headers_for):
    res = client.post('/api/projects', json=new_project_body(), headers=headers_for(owner))

    assert res.status_code == 201
    data = res.get_json()
    assert data['success'] is True
    assert data['project']['status'] == 'open'
    assert data['project']['owner']['id'] == owner.id
    assert data['project']['responses'] == []


def test_create_project_requires_token(client):
    res = client.post('/api/projects', json=new_project_body())

    assert res.status_code == 401
    assert res.get_json()['error']['kind'] == 'authentication_error'


def test_freelancer_cannot_create_project(client, freelancer, headers_for):
    res = client.post('/api/projects', json=new_project_body(), headers=headers_for(freelancer))

    assert res.status_code == 403
    assert res.get_json()['error']['kind'] == 'forbidden'


def test_create_project_validation(client, owner, headers_for):
    res = client.post(
        '/api/projects',
        json=new_project_body(title='Hey', budget=10, category='cooking'),
        headers=headers_for(owner),
    )

    assert res.status_code == 400
    error = res.get_json()['error']
    assert error['kind'] == 'validation_error'
    assert {d['field'] for d in error['details']} == {'title', 'budget', 'category'}


def test_create_project_rejects_unknown_fields(client, owner, headers_for):
    res = client.post('/api/projects', json=new_project_body(status='in_progress'), headers=headers_for(owner))

    assert res.status_code == 400
    assert res.get_json()['error']['details'][0]['field'] == 'status'


def test_create_project_rejects_non_json(client, owner, headers_for):
    res = client.post('/api/projects', data='title=x', headers=headers_for(owner))

    assert res.status_code == 400
    assert res.get_json()['error']['kind'] == 'validation_error'


def test_list_projects(client, project):
    res = client.get('/api/projects?category=development&page=1&limit=5')

    assert res.status_code == 200
    data = res.get_json()
    assert data['total'] == 1
    assert data['pages'] == 1
    assert data['projects'][0]['id'] == project.id
    assert 'responses' not in data['projects'][0]


def test_list_projects_bad_limit(client):
    res = client.get('/api/projects?limit=500')

    assert res.status_code == 400
    assert res.get_json()['error']['details'][0]['field'] == 'limit'


def test_get_project_increments_views(client, project, db_session):
    for expected in range(1, 4):
        res = client.get(f'/api/projects/{project.id}')
        assert res.status_code == 200
        assert res.get_json()['project']['views'] == expected

    db_session.expire_all()
    assert db_session.get(Project, project.id).views == 3


def test_get_missing_project(client):
    res = client.get('/api/projects/777')

    assert res.status_code == 404
    assert res.get_json() == {
        'success': False,
        'error': {'kind': 'not_found', 'message': 'Project not found'},
    }


def test_responses_only_visible_to_owner(client, project, owner, freelancer, second_freelancer, headers_for):
    client.post(f'/api/projects/{project.id}/respond', json={}, headers=headers_for(freelancer))

    anonymous = client.get(f'/api/projects/{project.id}').get_json()['project']
    assert anonymous['response_count'] == 1
    assert 'responses' not in anonymous
    assert 'my_response' not in anonymous

    mine = client.get(f'/api/projects/{project.id}', headers=headers_for(freelancer)).get_json()['project']
    assert mine['my_response']['freelancer_id'] == freelancer.id
    assert 'responses' not in mine

    other = client.get(f'/api/projects/{project.id}', headers=headers_for(second_freelancer)).get_json()['project']
    assert other['my_response'] is None

    as_owner = client.get(f'/api/projects/{project.id}', headers=headers_for(owner)).get_json()['project']
    assert len(as_owner['responses']) == 1


def test_bad_token_on_public_project_is_ignored(client, project):
    res = client.get(f'/api/projects/{project.id}', headers={'Authorization': 'Bearer not-a-jwt'})

    assert res.status_code == 200


def test_respond_and_duplicate(client, project, freelancer, headers_for):
    res = client.post(
        f'/api/projects/{project.id}/respond',
        json={'proposal': 'I have built ten of these.', 'timeline': '5 days'},
        headers=headers_for(freelancer),
    )

    assert res.status_code == 201
    response = res.get_json()['response']
    assert response['price'] == 8000
    assert response['status'] == 'pending'
    assert response['timeline'] == '5 days'

    again = client.post(f'/api/projects/{project.id}/respond', json={}, headers=headers_for(freelancer))
    assert again.status_code == 409
    assert again.get_json()['error']['kind'] == 'conflict'


def test_respond_rejects_unknown_fields(client, project, freelancer, headers_for):
    res = client.post(
        f'/api/projects/{project.id}/respond',
        json={'price': 5000, 'status': 'accepted'},
        headers=headers_for(freelancer),
    )

    assert res.status_code == 400
    assert ProjectResponse.query.count() == 0


def test_owner_accepts_response(client, project, owner, freelancer, headers_for, db_session):
    response_id = client.post(
        f'/api/projects/{project.id}/respond', json={}, headers=headers_for(freelancer)
    ).get_json()['response']['id']

    res = client.patch(
        f'/api/projects/{project.id}/responses/{response_id}',
        json={'status': 'accepted'},
        headers=headers_for(owner),
    )

    assert res.status_code == 200
    assert res.get_json()['response']['status'] == 'accepted'
    db_session.expire_all()
    assert db_session.get(Project, project.id).status == 'in_progress'


def test_response_author_cannot_accept_own_response(client, project, freelancer, headers_for, db_session):
    response_id = client.post(
        f'/api/projects/{project.id}/respond', json={}, headers=headers_for(freelancer)
    ).get_json()['response']['id']

    res = client.patch(
        f'/api/projects/{project.id}/responses/{response_id}',
        json={'status': 'accepted'},
        headers=headers_for(freelancer),
    )

    assert res.status_code == 403
    db_session.expire_all()
    assert db_session.get(ProjectResponse, response_id).status == 'pending'
    assert db_session.get(Project, project.id).status == 'open'


def test_status_must_be_accepted_or_rejected(client, project, owner, freelancer, headers_for):
    response_id = client.post(
        f'/api/projects/{project.id}/respond', json={}, headers=headers_for(freelancer)
    ).get_json()['response']['id']

    res = client.patch(
        f'/api/projects/{project.id}/responses/{response_id}',
        json={'status': 'completed'},
        headers=headers_for(owner),
    )

    assert res.status_code == 400


def test_unknown_response(client, project, owner, headers_for):
    res = client.patch(
        f'/api/projects/{project.id}/responses/99',
        json={'status': 'rejected'},
        headers=headers_for(owner),
    )

    assert res.status_code == 404
    assert res.get_json()['error']['message'] == 'Response not found'


def test_my_responses(client, make_project, owner, freelancer, headers_for):
    first = make_project(owner)
    second = make_project(owner, title='Second landing page')
    client.post(f'/api/projects/{first.id}/respond', json={}, headers=headers_for(freelancer))
    client.post(f'/api/projects/{second.id}/respond', json={'price': 100}, headers=headers_for(freelancer))

    res = client.get('/api/projects/my/responses', headers=headers_for(freelancer))

    assert res.status_code == 200
    responses = res.get_json()['responses']
    assert {r['project']['id'] for r in responses} == {first.id, second.id}
    assert all(r['project']['owner']['id'] == owner.id for r in responses)


def test_my_projects(client, make_project, owner, other_client, headers_for):
    mine = make_project(owner)
    make_project(other_client, title='Someone else project')

    res = client.get('/api/projects/client/my-projects', headers=headers_for(owner))

    assert [p['id'] for p in res.get_json()['projects']] == [mine.id]
