"""
Persistence for the Project aggregate.

The repository owns every session interaction for projects and their
responses. Mutating callers load with ``for_update=True`` so the project row
is locked for the rest of the transaction (PostgreSQL); the unique
(project_id, freelancer_id) constraint on responses is the storage-level
guard against concurrent duplicate bids.
"""
import logging
import math

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from errors import Conflict, NotFound, StorageError
from models import Project, ProjectResponse, quote_skill

logger = logging.getLogger(__name__)

DUPLICATE_RESPONSE_CONSTRAINT = 'unique_response_per_freelancer'


def like_escape(value):
    """Escape LIKE wildcards so user input matches literally"""
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def contains_ci(column, term):
    """Case-insensitive (Unicode) substring match of an unescaped ``term``"""
    return func.lower(column).like(f'%{like_escape(term.lower())}%', escape='\\')


def is_duplicate_response(error):
    """True when ``error`` violates the one-response-per-freelancer constraint"""
    diag = getattr(error.orig, 'diag', None)
    if getattr(diag, 'constraint_name', None):
        return diag.constraint_name == DUPLICATE_RESPONSE_CONSTRAINT
    message = str(error.orig)
    # SQLite names the columns rather than the constraint
    return (DUPLICATE_RESPONSE_CONSTRAINT in message
            or 'project_response.project_id, project_response.freelancer_id' in message)


class ProjectRepository:

    def __init__(self, db):
        self.db = db

    @property
    def session(self):
        return self.db.session

    def load_project(self, project_id, for_update=False):
        query = Project.query.options(selectinload(Project.responses)).filter(Project.id == project_id)
        if for_update:
            query = query.with_for_update(of=Project)
        try:
            project = query.first()
        except SQLAlchemyError as e:
            self._fail('load project', e)
        if project is None:
            raise NotFound('Project not found')
        return project

    def add_project(self, project):
        self.session.add(project)
        self.save()
        return project

    def add_response(self, project, response):
        """Append ``response`` to ``project`` and persist both.

        A unique-constraint violation means another request stored a bid for
        the same freelancer first.
        """
        project.responses.append(response)
        try:
            self.session.commit()
        except IntegrityError as e:
            if not is_duplicate_response(e):
                self._fail('save response', e)
            self.session.rollback()
            raise Conflict('You have already responded to this project')
        except SQLAlchemyError as e:
            self._fail('save response', e)
        return response

    def save(self):
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self._fail('commit', e)

    def increment_views(self, project_id):
        """Atomically add one view; returns False when the project is missing"""
        try:
            updated = Project.query.filter(Project.id == project_id).update(
                {Project.views: Project.views + 1}, synchronize_session=False
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self._fail('increment views', e)
        return updated > 0

    def query_projects(self, category=None, search='', status='open', page=1, limit=10):
        """Return (projects, total, pages) for one page of matching projects"""
        query = Project.query.filter(Project.status == status)
        if category and category != 'all':
            query = query.filter(Project.category == category)
        if search:
            # skills are stored as a JSON array, so a quoted element is an exact member
            query = query.filter(or_(
                contains_ci(Project.title, search),
                contains_ci(Project.description, search),
                contains_ci(Project.skills, quote_skill(search)),
            ))
        try:
            total = query.count()
            projects = (
                query.options(selectinload(Project.responses))
                .order_by(Project.created_at.desc(), Project.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self._fail('query projects', e)
        return projects, total, math.ceil(total / limit) if limit else 0

    def projects_for_owner(self, owner_id):
        try:
            return (
                Project.query.options(selectinload(Project.responses))
                .filter(Project.owner_id == owner_id)
                .order_by(Project.created_at.desc(), Project.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self._fail('load owner projects', e)

    def responses_by_freelancer(self, freelancer_id):
        try:
            return (
                ProjectResponse.query.options(selectinload(ProjectResponse.project))
                .filter(ProjectResponse.freelancer_id == freelancer_id)
                .order_by(ProjectResponse.created_at.desc(), ProjectResponse.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self._fail('load freelancer responses', e)

    def _fail(self, action, error):
        self.session.rollback()
        logger.error(f"Project repository failed to {action}: {str(error)}")
        raise StorageError() from error
