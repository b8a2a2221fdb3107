"""
Chat Service
Conversations between a project owner and a freelancer. Messages are read
by polling with ``after_id``; each side keeps its own unread counter.
"""
import json
import logging
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import Conflict, Forbidden, NotFound, StorageError
from models import Chat, Message, Project, Role, User

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


class ChatService:

    def __init__(self, db, clock=datetime.utcnow):
        self.db = db
        self.clock = clock

    def get_or_create_chat(self, principal, project_id, freelancer_id):
        """
        Open (or reopen) the chat between the caller, who must own the
        project, and one freelancer.

        Returns:
            (chat, created) tuple
        """
        project = self.db.session.get(Project, project_id)
        if not project:
            raise NotFound('Project not found')
        if project.owner_id != principal.id:
            raise Forbidden('Only the project owner can start a chat')

        freelancer = self.db.session.get(User, freelancer_id)
        if not freelancer or freelancer.role != Role.FREELANCER.value:
            raise NotFound('Freelancer not found')
        if freelancer.id == principal.id:
            raise Forbidden('You cannot start a chat with yourself')

        chat = Chat.query.filter_by(
            project_id=project.id, client_id=principal.id, freelancer_id=freelancer.id
        ).first()
        if chat:
            return chat, False

        chat = Chat(
            project_id=project.id,
            client_id=principal.id,
            freelancer_id=freelancer.id,
            last_message='',
            last_message_at=self.clock(),
            created_at=self.clock(),
        )
        self.db.session.add(chat)
        try:
            self.db.session.commit()
        except IntegrityError:
            # another request created the same chat first
            self.db.session.rollback()
            chat = Chat.query.filter_by(
                project_id=project.id, client_id=principal.id, freelancer_id=freelancer.id
            ).first()
            if chat is None:
                raise Conflict('Chat could not be created')
            return chat, False
        except SQLAlchemyError as e:
            self._fail('create chat', e)

        logger.info(f"Chat {chat.id} opened on project {project.id} with freelancer {freelancer.id}")
        return chat, True

    def list_chats(self, principal):
        try:
            return (
                Chat.query.filter(
                    Chat.is_active.is_(True),
                    or_(Chat.client_id == principal.id, Chat.freelancer_id == principal.id),
                )
                .order_by(Chat.last_message_at.desc(), Chat.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self._fail('list chats', e)

    def get_messages(self, principal, chat_id, after_id=0):
        """Messages newer than ``after_id``, oldest first; marks the other side's as read"""
        chat = self._load_chat(principal, chat_id)
        try:
            messages = (
                Message.query.filter(Message.chat_id == chat.id, Message.id > after_id)
                .order_by(Message.id.asc())
                .all()
            )
            Message.query.filter(
                Message.chat_id == chat.id,
                Message.sender_id != principal.id,
                Message.is_read.is_(False),
            ).update({Message.is_read: True}, synchronize_session=False)
            Chat.query.filter(Chat.id == chat.id).update(
                {self._unread_column(chat, principal.id): 0}, synchronize_session=False
            )
            self.db.session.commit()
        except SQLAlchemyError as e:
            self._fail('load messages', e)
        for message in messages:
            if message.sender_id != principal.id:
                message.is_read = True
        return messages

    def send_message(self, principal, chat_id, payload):
        chat = self._load_chat(principal, chat_id)
        now = self.clock()
        message = Message(
            chat_id=chat.id,
            sender_id=principal.id,
            text=payload.text,
            message_type=payload.type,
            file=json.dumps(payload.file, ensure_ascii=False) if payload.file else None,
            is_read=False,
            created_at=now,
        )
        other_id = chat.freelancer_id if principal.id == chat.client_id else chat.client_id
        unread = self._unread_column(chat, other_id)
        try:
            self.db.session.add(message)
            Chat.query.filter(Chat.id == chat.id).update({
                Chat.last_message: payload.text[:PREVIEW_LENGTH],
                Chat.last_message_at: now,
                unread: unread + 1,
            }, synchronize_session=False)
            self.db.session.commit()
        except SQLAlchemyError as e:
            self._fail('send message', e)
        logger.info(f"User {principal.id} sent message {message.id} in chat {chat.id}")
        return message

    def _load_chat(self, principal, chat_id):
        chat = self.db.session.get(Chat, chat_id)
        if not chat or not chat.is_active:
            raise NotFound('Chat not found')
        if not chat.has_participant(principal.id):
            raise Forbidden('You are not a participant of this chat')
        return chat

    @staticmethod
    def _unread_column(chat, user_id):
        if user_id == chat.client_id:
            return Chat.unread_count_client
        return Chat.unread_count_freelancer

    def _fail(self, action, error):
        self.db.session.rollback()
        logger.error(f"Failed to {action}: {str(error)}")
        raise StorageError() from error
