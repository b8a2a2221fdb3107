"""
Account Service
Registration, password and OAuth login, profiles and the freelancer directory.
"""
import logging
import math

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from errors import AuthenticationError, Conflict, Forbidden, NotFound, StorageError, ValidationError
from models import Role, User, dump_list, quote_skill
from repository import contains_ci

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    'full_name', 'bio', 'location', 'category', 'title', 'hourly_rate',
    'experience', 'website', 'telegram', 'github', 'avatar',
)


def normalize_email(email):
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f'Invalid email: {str(e)}', details=[{'field': 'email', 'message': str(e)}]) from None


class UserService:

    def __init__(self, db, security_logger=None):
        self.db = db
        self.security_logger = security_logger

    def register(self, payload):
        email = normalize_email(payload.email)
        if User.query.filter_by(email=email).first():
            raise Conflict('A user with this email already exists')

        user = User(
            email=email,
            password_hash=generate_password_hash(payload.password),
            role=Role(payload.role).value,
            full_name=payload.full_name,
            skills=dump_list([]),
        )
        self.db.session.add(user)
        try:
            self.db.session.commit()
        except IntegrityError:
            self.db.session.rollback()
            raise Conflict('A user with this email already exists')
        except SQLAlchemyError as e:
            self._fail('register user', e)

        logger.info(f"User {user.id} registered as {user.role}")
        if self.security_logger:
            self.security_logger.log_authentication('registration', email, 'success', user_id=user.id)
        return user

    def authenticate(self, payload):
        """Check email/password; the same error covers unknown email and bad password"""
        try:
            email = normalize_email(payload.email)
        except ValidationError:
            raise AuthenticationError('Invalid email or password') from None

        user = User.query.filter_by(email=email).first()
        if not user or not user.password_hash or not check_password_hash(user.password_hash, payload.password):
            if self.security_logger:
                self.security_logger.log_authentication('login_failure', email, 'failure')
            raise AuthenticationError('Invalid email or password')

        if not user.is_active:
            if self.security_logger:
                self.security_logger.log_authentication('login_blocked', email, 'blocked', user_id=user.id)
            raise Forbidden('Account is deactivated')

        if self.security_logger:
            self.security_logger.log_authentication('login_success', email, 'success', user_id=user.id)
        return user

    def login_with_oauth(self, identity):
        """
        Find or create the user behind an OAuth identity.

        Args:
            identity: dict with provider, provider_id, email, full_name, avatar

        Returns:
            (user, created) tuple
        """
        email = normalize_email(identity['email'])
        provider = identity['provider']
        user = User.query.filter(or_(
            User.email == email,
            (User.oauth_provider == provider) & (User.oauth_id == str(identity['provider_id'])),
        )).first()

        created = user is None
        if created:
            user = User(
                email=email,
                password_hash=None,
                role=Role.FREELANCER.value,
                full_name=identity.get('full_name') or 'User',
                skills=dump_list([]),
            )
            self.db.session.add(user)
        elif not user.is_active:
            raise Forbidden('Account is deactivated')

        user.is_oauth = True
        user.oauth_provider = provider
        user.oauth_id = str(identity['provider_id'])
        if identity.get('avatar') and not user.avatar:
            user.avatar = identity['avatar']

        try:
            self.db.session.commit()
        except SQLAlchemyError as e:
            self._fail('save OAuth user', e)

        logger.info(f"OAuth login for user {user.id} via {provider} (new={created})")
        if self.security_logger:
            self.security_logger.log_authentication(f'{provider}_oauth_login', email, 'success', user_id=user.id)
        return user, created

    def get_user(self, user_id):
        user = self.db.session.get(User, user_id)
        if not user:
            raise NotFound('User not found')
        return user

    def update_profile(self, principal, payload):
        user = self.get_user(principal.id)
        changes = payload.model_dump(exclude_unset=True)
        for field in PROFILE_FIELDS:
            if field in changes:
                setattr(user, field, changes[field])
        if 'skills' in changes:
            user.skills = dump_list(changes['skills'])
        try:
            self.db.session.commit()
        except SQLAlchemyError as e:
            self._fail('update profile', e)
        return user

    def list_freelancers(self, query):
        q = User.query.filter(User.role == Role.FREELANCER.value, User.is_active.is_(True))
        if query.category and query.category != 'all':
            q = q.filter(User.category == query.category)
        if query.search:
            q = q.filter(or_(
                contains_ci(User.full_name, query.search),
                contains_ci(User.bio, query.search),
                contains_ci(User.skills, quote_skill(query.search)),
            ))
        try:
            total = q.count()
            users = (
                q.order_by(User.rating.desc(), User.id.asc())
                .offset((query.page - 1) * query.limit)
                .limit(query.limit)
                .all()
            )
        except SQLAlchemyError as e:
            self._fail('search freelancers', e)
        return {
            'users': users,
            'total': total,
            'page': query.page,
            'pages': math.ceil(total / query.limit),
        }

    def _fail(self, action, error):
        self.db.session.rollback()
        logger.error(f"Failed to {action}: {str(error)}")
        raise StorageError() from error
