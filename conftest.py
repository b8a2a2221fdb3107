import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from auth import Principal, issue_token
from config import TestConfig
from models import Role, User, db as _db
from schemas import ProjectCreatePayload

PASSWORD = 'secret123'


@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig, SECURITY_LOG_DIR=str(tmp_path / 'logs'))
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    return _db.session


@pytest.fixture
def make_user(db_session):
    def _make_user(email, role=Role.FREELANCER, full_name='Test User', **fields):
        fields.setdefault('skills', '[]')
        user = User(
            email=email,
            password_hash=generate_password_hash(PASSWORD),
            role=role.value,
            full_name=full_name,
            **fields
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make_user


@pytest.fixture
def owner(make_user):
    return make_user('owner@mail.ru', role=Role.CLIENT, full_name='Project Owner')


@pytest.fixture
def other_client(make_user):
    return make_user('other.client@mail.ru', role=Role.CLIENT, full_name='Other Client')


@pytest.fixture
def freelancer(make_user):
    return make_user('alice@mail.ru', full_name='Alice Freelancer')


@pytest.fixture
def second_freelancer(make_user):
    return make_user('bob@mail.ru', full_name='Bob Freelancer')


@pytest.fixture
def bidding_service(app):
    return app.extensions['bidding_service']


@pytest.fixture
def make_project(bidding_service):
    def _make_project(owner, **overrides):
        data = {
            'title': 'Landing page for a bakery',
            'description': 'Need a one-page site with a menu and a contact form.',
            'category': 'development',
            'budget': 10000,
            'skills': ['html', 'css'],
        }
        data.update(overrides)
        return bidding_service.create_project(Principal.from_user(owner), ProjectCreatePayload(**data))
    return _make_project


@pytest.fixture
def project(owner, make_project):
    return make_project(owner)


def auth_headers(user):
    return {'Authorization': f'Bearer {issue_token(user)}'}


@pytest.fixture
def headers_for(app):
    return auth_headers
