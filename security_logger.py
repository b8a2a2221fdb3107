"""
Security Event Logging Service
Writes authentication and authorization events as JSON lines to rotating files
"""
import json
import logging
import logging.handlers
import os
from typing import Any, Dict, Optional

from flask import g, has_request_context, request


class SecurityLogger:
    """
    Structured security event log. Events go to ``security.log``; WARNING and
    above are duplicated into ``security_critical.log``.
    """

    def __init__(self, app=None):
        self.app = app
        self.logger = None
        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize security logger with Flask app"""
        self.app = app
        self._setup_structured_logging(app.config['SECURITY_LOG_DIR'])
        app.extensions['security_logger'] = self

    def _setup_structured_logging(self, log_dir):
        """Configure structured logging with JSON format and file rotation"""
        os.makedirs(log_dir, exist_ok=True)

        self.logger = logging.getLogger('security')
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        json_formatter = logging.Formatter(
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "message": %(message)s}'
        )

        # 50MB per file, keep 10 backups
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'security.log'),
            maxBytes=50 * 1024 * 1024,
            backupCount=10,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(json_formatter)
        self.logger.addHandler(file_handler)

        critical_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'security_critical.log'),
            maxBytes=50 * 1024 * 1024,
            backupCount=10,
            encoding='utf-8'
        )
        critical_handler.setLevel(logging.WARNING)
        critical_handler.setFormatter(json_formatter)
        self.logger.addHandler(critical_handler)

        if self.app and self.app.debug:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.DEBUG)
            console_handler.setFormatter(json_formatter)
            self.logger.addHandler(console_handler)

    def _get_request_context(self) -> Dict[str, Any]:
        """Extract context from current request"""
        context = {
            'ip_address': None,
            'user_agent': None,
            'request_method': None,
            'request_path': None,
            'user_id': None,
        }
        if not has_request_context():
            return context

        context['ip_address'] = request.remote_addr
        context['user_agent'] = request.headers.get('User-Agent', '')
        context['request_method'] = request.method
        context['request_path'] = request.path

        principal = g.get('principal')
        if principal is not None:
            context['user_id'] = principal.id
        return context

    def log_event(
        self,
        event_category: str,
        event_type: str,
        action: str,
        severity: str = 'medium',
        status: str = 'success',
        message: str = '',
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict] = None,
        user_id: Optional[int] = None,
        username: Optional[str] = None
    ):
        """
        Log a security event to the structured log

        Args:
            event_category: Category (authentication, authorization)
            event_type: Specific event type (login_success, login_failure, permission_denied, etc.)
            action: Human-readable action description
            severity: Event severity (low, medium, high, critical)
            status: Event status (success, failure, blocked)
            message: Additional message
            resource_type: Type of resource affected (project, response, chat, etc.)
            resource_id: ID of affected resource
            details: Additional context as dictionary
            user_id: Override user ID (if no principal on the request)
            username: Email or login name the event concerns
        """
        if self.logger is None:
            return
        context = self._get_request_context()
        if user_id:
            context['user_id'] = user_id

        log_data = {
            'event_category': event_category,
            'event_type': event_type,
            'severity': severity,
            'user_id': context['user_id'],
            'username': username,
            'ip_address': context['ip_address'],
            'user_agent': context['user_agent'],
            'request_method': context['request_method'],
            'request_path': context['request_path'],
            'action': action,
            'resource_type': resource_type,
            'resource_id': str(resource_id) if resource_id is not None else None,
            'status': status,
            'message': message,
            'details': details,
        }

        log_level = {
            'low': logging.INFO,
            'medium': logging.WARNING,
            'high': logging.ERROR,
            'critical': logging.CRITICAL
        }.get(severity, logging.INFO)

        try:
            self.logger.log(log_level, json.dumps(log_data, ensure_ascii=False, default=str))
        except (OSError, ValueError) as e:
            # Fallback to app logger if the log file cannot be written
            if self.app:
                self.app.logger.error(f"Security logging failed: {e}")
                self.app.logger.error(f"Event: {event_category}/{event_type} - {action}")

    # Convenience methods for common security events

    def log_authentication(self, event_type: str, username: str, status: str, message: str = '', **kwargs):
        """Log authentication event"""
        severity = 'high' if status == 'failure' else 'low'
        self.log_event(
            event_category='authentication',
            event_type=event_type,
            action=f"User authentication: {event_type}",
            severity=severity,
            status=status,
            message=message,
            username=username,
            **kwargs
        )

    def log_authorization(self, event_type: str, resource_type: Optional[str] = None,
                          resource_id: Optional[str] = None, status: str = 'blocked',
                          message: str = '', **kwargs):
        """Log authorization event (permission denied, role mismatch)"""
        self.log_event(
            event_category='authorization',
            event_type=event_type,
            action=f"Authorization check: {event_type}",
            severity='medium',
            status=status,
            message=message,
            resource_type=resource_type,
            resource_id=resource_id,
            **kwargs
        )
