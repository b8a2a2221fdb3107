import enum
import json
import sqlite3
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()

CATEGORIES = ('development', 'design', 'marketing', 'writing', 'seo', 'other')
MIN_BUDGET = 1000
MAX_BUDGET = 1000000


@event.listens_for(Engine, 'connect')
def _sqlite_unicode_lower(dbapi_connection, connection_record):
    """SQLite's built-in lower() only folds ASCII; replace it so Cyrillic searches match"""
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.create_function(
            'lower', 1, lambda value: value.lower() if isinstance(value, str) else value, deterministic=True
        )


class Role(str, enum.Enum):
    CLIENT = 'client'
    FREELANCER = 'freelancer'

    @classmethod
    def parse(cls, value):
        """Return the Role for a stored string; unknown values are rejected"""
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None


class ProjectStatus(str, enum.Enum):
    OPEN = 'open'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class ResponseStatus(str, enum.Enum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'


def _load_list(raw):
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


def dump_list(values):
    return json.dumps(list(values or []), ensure_ascii=False)


def quote_skill(skill):
    """A skill as it appears inside a stored JSON array"""
    return json.dumps(skill, ensure_ascii=False)


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255))  # null for OAuth-only accounts
    role = db.Column(db.String(20), nullable=False, default=Role.FREELANCER.value)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Profile
    full_name = db.Column(db.String(120), default='')
    bio = db.Column(db.Text, default='')
    avatar = db.Column(db.String(500))
    category = db.Column(db.String(50), default='other')
    location = db.Column(db.String(100))
    title = db.Column(db.String(100))
    hourly_rate = db.Column(db.Float)
    experience = db.Column(db.String(100))
    website = db.Column(db.String(255))
    telegram = db.Column(db.String(50))
    github = db.Column(db.String(50))
    skills = db.Column(db.Text)  # JSON string
    rating = db.Column(db.Float, default=5.0)
    completed_projects = db.Column(db.Integer, default=0)

    # OAuth
    is_oauth = db.Column(db.Boolean, default=False)
    oauth_provider = db.Column(db.String(20))
    oauth_id = db.Column(db.String(100), index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def role_enum(self):
        return Role.parse(self.role)

    @property
    def skills_list(self):
        return _load_list(self.skills)

    def summary(self):
        return {
            'id': self.id,
            'full_name': self.full_name,
            'avatar': self.avatar,
            'rating': self.rating,
        }

    def to_dict(self, include_private=False):
        data = {
            'id': self.id,
            'role': self.role,
            'full_name': self.full_name,
            'bio': self.bio,
            'avatar': self.avatar,
            'category': self.category,
            'location': self.location,
            'title': self.title,
            'hourly_rate': self.hourly_rate,
            'experience': self.experience,
            'website': self.website,
            'telegram': self.telegram,
            'github': self.github,
            'skills': self.skills_list,
            'rating': self.rating,
            'completed_projects': self.completed_projects,
            'created_at': _iso(self.created_at),
        }
        if include_private:
            data.update({
                'email': self.email,
                'is_oauth': self.is_oauth,
                'oauth_provider': self.oauth_provider,
                'updated_at': _iso(self.updated_at),
            })
        return data


class Project(db.Model):
    __table_args__ = (
        db.Index('ix_project_status_created', 'status', 'created_at'),
    )
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(50), nullable=False, index=True)
    budget = db.Column(db.Integer, nullable=False)
    deadline = db.Column(db.String(100), default='')
    skills = db.Column(db.Text)  # JSON string
    status = db.Column(db.String(20), nullable=False, default=ProjectStatus.OPEN.value)
    views = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = db.relationship('User', lazy='joined', innerjoin=True)
    responses = db.relationship(
        'ProjectResponse',
        back_populates='project',
        order_by='ProjectResponse.id',
        cascade='all, delete-orphan',
    )

    @property
    def skills_list(self):
        return _load_list(self.skills)

    def find_response(self, response_id):
        for response in self.responses:
            if response.id == response_id:
                return response
        return None

    def response_by_freelancer(self, freelancer_id):
        for response in self.responses:
            if response.freelancer_id == freelancer_id:
                return response
        return None

    def summary(self):
        return {
            'id': self.id,
            'title': self.title,
            'budget': self.budget,
            'status': self.status,
            'owner': self.owner.summary() if self.owner else None,
        }

    def to_dict(self, viewer_id=None, include_responses=False):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'budget': self.budget,
            'deadline': self.deadline,
            'skills': self.skills_list,
            'status': self.status,
            'views': self.views,
            'owner': self.owner.summary() if self.owner else None,
            'response_count': len(self.responses),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        if include_responses or (viewer_id is not None and viewer_id == self.owner_id):
            data['responses'] = [r.to_dict() for r in self.responses]
        elif viewer_id is not None:
            mine = self.response_by_freelancer(viewer_id)
            data['my_response'] = mine.to_dict() if mine else None
        return data


class ProjectResponse(db.Model):
    """A freelancer's bid on a project; one per (project, freelancer)"""
    __tablename__ = 'project_response'
    __table_args__ = (
        db.UniqueConstraint('project_id', 'freelancer_id', name='unique_response_per_freelancer'),
    )
    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey('project.id'), nullable=False, index=True)
    freelancer_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    proposal = db.Column(db.Text)
    price = db.Column(db.Float, nullable=False)
    timeline = db.Column(db.String(100))
    status = db.Column(db.String(20), nullable=False, default=ResponseStatus.PENDING.value)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    project = db.relationship('Project', back_populates='responses')
    freelancer = db.relationship('User', lazy='joined')

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'freelancer_id': self.freelancer_id,
            'freelancer': self.freelancer.summary() if self.freelancer else None,
            'proposal': self.proposal,
            'price': self.price,
            'timeline': self.timeline,
            'status': self.status,
            'created_at': _iso(self.created_at),
        }


class Chat(db.Model):
    """Conversation between a project owner and a freelancer about one project"""
    __table_args__ = (
        db.UniqueConstraint('project_id', 'client_id', 'freelancer_id', name='unique_chat_per_pair'),
    )
    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey('project.id'), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    freelancer_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    last_message = db.Column(db.Text, default='')
    last_message_at = db.Column(db.DateTime, default=datetime.utcnow)
    unread_count_client = db.Column(db.Integer, nullable=False, default=0)
    unread_count_freelancer = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    project = db.relationship('Project')
    client = db.relationship('User', foreign_keys=[client_id])
    freelancer = db.relationship('User', foreign_keys=[freelancer_id])

    def has_participant(self, user_id):
        return user_id in (self.client_id, self.freelancer_id)

    def to_dict(self, viewer_id=None):
        data = {
            'id': self.id,
            'project': {
                'id': self.project.id,
                'title': self.project.title,
                'status': self.project.status,
                'budget': self.project.budget,
            } if self.project else None,
            'client': self.client.summary() if self.client else None,
            'freelancer': self.freelancer.summary() if self.freelancer else None,
            'last_message': self.last_message,
            'last_message_at': _iso(self.last_message_at),
            'created_at': _iso(self.created_at),
        }
        if viewer_id == self.client_id:
            data['unread_count'] = self.unread_count_client
        elif viewer_id == self.freelancer_id:
            data['unread_count'] = self.unread_count_freelancer
        return data


class Message(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    chat_id = db.Column(db.Integer, db.ForeignKey('chat.id'), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    text = db.Column(db.String(2000), nullable=False)
    message_type = db.Column(db.String(20), nullable=False, default='text')  # text, file
    file = db.Column(db.Text)  # JSON string
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    sender = db.relationship('User', lazy='joined')

    def to_dict(self):
        return {
            'id': self.id,
            'chat_id': self.chat_id,
            'sender_id': self.sender_id,
            'sender': self.sender.summary() if self.sender else None,
            'text': self.text,
            'type': self.message_type,
            'file': json.loads(self.file) if self.file else None,
            'is_read': self.is_read,
            'created_at': _iso(self.created_at),
        }
