"""
Project Bidding Service
Owns project posting and the response (bid) workflow: who may respond,
one response per freelancer, price/timeline defaults, and owner-only
status decisions.
"""

import logging
from datetime import datetime
from typing import Dict, List, Tuple

from auth import Principal, require_role
from errors import Conflict, Forbidden, NotFound, ValidationError
from models import Project, ProjectResponse, ProjectStatus, ResponseStatus, Role, dump_list

logger = logging.getLogger(__name__)

DEFAULT_PRICE_RATIO = 0.8
DEFAULT_TIMELINE = '2 weeks'
DEFAULT_PROPOSAL = 'Ready to take on this project!'


class ProjectBiddingService:
    """
    Enforces the bidding workflow's rules. Durable reads and writes go
    through the repository; the service keeps no state between calls.
    """

    def __init__(self, repository, clock=datetime.utcnow):
        """
        Args:
            repository: ProjectRepository used to load, save and query projects
            clock: Callable returning the current UTC time
        """
        self.repository = repository
        self.clock = clock

    # Projects

    def create_project(self, principal: Principal, payload) -> Project:
        require_role(principal, Role.CLIENT, 'Only clients can post projects')
        project = Project(
            owner_id=principal.id,
            title=payload.title,
            description=payload.description,
            category=payload.category,
            budget=payload.budget,
            deadline=payload.deadline or '',
            skills=dump_list(payload.skills),
            status=ProjectStatus.OPEN.value,
            views=0,
            created_at=self.clock(),
        )
        self.repository.add_project(project)
        logger.info(f"Project {project.id} created by user {principal.id}")
        return project

    def get_project(self, project_id: int) -> Project:
        """Load a project, counting the read as one view"""
        if not self.repository.increment_views(project_id):
            raise NotFound('Project not found')
        return self.repository.load_project(project_id)

    def list_projects(self, query) -> Dict:
        projects, total, pages = self.repository.query_projects(
            category=query.category,
            search=query.search,
            status=query.status.value,
            page=query.page,
            limit=query.limit,
        )
        return {
            'projects': projects,
            'total': total,
            'page': query.page,
            'pages': pages,
        }

    def list_projects_for_owner(self, principal: Principal) -> List[Project]:
        return self.repository.projects_for_owner(principal.id)

    # Responses

    def submit_response(self, project_id: int, principal: Principal, payload) -> ProjectResponse:
        require_role(principal, Role.FREELANCER, 'Only freelancers can respond to projects')

        project = self.repository.load_project(project_id, for_update=True)

        if project.owner_id == principal.id:
            raise Forbidden('You cannot respond to your own project')

        if project.response_by_freelancer(principal.id) is not None:
            raise Conflict('You have already responded to this project')

        price = payload.price
        if price is None:
            price = project.budget * DEFAULT_PRICE_RATIO

        response = ProjectResponse(
            freelancer_id=principal.id,
            proposal=payload.proposal or DEFAULT_PROPOSAL,
            price=price,
            timeline=payload.timeline or DEFAULT_TIMELINE,
            status=ResponseStatus.PENDING.value,
            created_at=self.clock(),
        )
        self.repository.add_response(project, response)
        logger.info(f"Freelancer {principal.id} responded to project {project.id} (response {response.id})")
        return response

    def update_response_status(self, project_id: int, response_id: int,
                               principal: Principal, new_status) -> ProjectResponse:
        """
        Accept or reject a pending response. Only the project owner may decide;
        accepting moves the project to in_progress. Other responses are left
        as they are.
        """
        try:
            new_status = ResponseStatus(new_status)
        except ValueError:
            raise ValidationError(f'Invalid response status: {new_status}') from None
        if new_status is ResponseStatus.PENDING:
            raise ValidationError('Status must be accepted or rejected')

        project = self.repository.load_project(project_id, for_update=True)

        if project.owner_id != principal.id:
            raise Forbidden('Only the project owner can change response status')

        response = project.find_response(response_id)
        if response is None:
            raise NotFound('Response not found')

        if response.status != ResponseStatus.PENDING.value:
            raise Conflict(f'Response has already been {response.status}')

        response.status = new_status.value
        if new_status is ResponseStatus.ACCEPTED:
            project.status = ProjectStatus.IN_PROGRESS.value

        self.repository.save()
        logger.info(f"Response {response.id} on project {project.id} marked {new_status.value}")
        return response

    def list_responses_for_user(self, principal: Principal) -> List[Tuple[ProjectResponse, Dict]]:
        """Every response the caller submitted, paired with its project summary"""
        return [
            (response, response.project.summary())
            for response in self.repository.responses_by_freelancer(principal.id)
        ]
