"""
In-process request throttling.

Two limits are kept per client address: a sliding one-minute window for
every /api request, and a login/register attempt counter with a lockout.
Storage is in-memory, so limits are per worker process.
"""
import threading
from datetime import datetime, timedelta
from functools import wraps

from flask import current_app, request

from errors import RateLimited

CLEANUP_INTERVAL_SECONDS = 300


def client_address():
    """Peer address; behind a proxy, ProxyFix (TRUSTED_PROXIES) rewrites it from X-Forwarded-For"""
    return request.remote_addr or 'unknown'


class RateLimiter:

    def __init__(self, app=None):
        self.api_requests = {}
        self.login_attempts = {}
        self._lock = threading.Lock()
        self._last_cleanup = datetime.utcnow()
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.enabled = app.config.get('RATELIMIT_ENABLED', True)
        self.per_minute = app.config.get('RATELIMIT_PER_MINUTE', 100)
        self.max_attempts = app.config.get('LOGIN_MAX_ATTEMPTS', 5)
        self.window = timedelta(minutes=app.config.get('LOGIN_WINDOW_MINUTES', 15))
        self.lockout = timedelta(minutes=app.config.get('LOGIN_LOCKOUT_MINUTES', 30))
        app.extensions['rate_limiter'] = self
        app.before_request(self.check_api_limit)

    def check_api_limit(self):
        """before_request hook: global per-address limit on /api routes"""
        if not self.enabled or not request.path.startswith('/api/'):
            return None
        identifier = client_address()
        current_time = datetime.utcnow()

        with self._lock:
            self._maybe_cleanup(current_time)
            rate_data = self.api_requests.setdefault(identifier, {'requests': [], 'blocked_until': None})

            if rate_data['blocked_until'] and current_time < rate_data['blocked_until']:
                remaining = int((rate_data['blocked_until'] - current_time).total_seconds())
                raise RateLimited(f'Rate limit exceeded. Try again in {remaining} seconds')

            one_minute_ago = current_time - timedelta(minutes=1)
            rate_data['requests'] = [t for t in rate_data['requests'] if t > one_minute_ago]

            if len(rate_data['requests']) >= self.per_minute:
                rate_data['blocked_until'] = current_time + timedelta(seconds=60)
                raise RateLimited('Rate limit exceeded. Please wait a moment.')

            rate_data['requests'].append(current_time)
        return None

    def check_attempt(self, identifier):
        """Count one login/register attempt; raises RateLimited while locked out"""
        if not self.enabled:
            return
        current_time = datetime.utcnow()
        with self._lock:
            attempt_data = self.login_attempts.setdefault(
                identifier, {'count': 0, 'first_attempt': current_time, 'locked_until': None}
            )

            if attempt_data['locked_until'] and current_time < attempt_data['locked_until']:
                remaining = int((attempt_data['locked_until'] - current_time).total_seconds() / 60) + 1
                raise RateLimited(f'Too many failed attempts. Try again in {remaining} minutes')

            if current_time - attempt_data['first_attempt'] > self.window:
                attempt_data.update({'count': 0, 'first_attempt': current_time, 'locked_until': None})

            if attempt_data['count'] >= self.max_attempts:
                attempt_data['locked_until'] = current_time + self.lockout
                lockout_minutes = int(self.lockout.total_seconds() / 60)
                raise RateLimited(f'Too many failed attempts. Try again in {lockout_minutes} minutes')

            attempt_data['count'] += 1

    def reset_attempts(self, identifier):
        with self._lock:
            self.login_attempts.pop(identifier, None)

    def _maybe_cleanup(self, current_time):
        if (current_time - self._last_cleanup).total_seconds() < CLEANUP_INTERVAL_SECONDS:
            return
        cutoff = current_time - timedelta(hours=1)
        stale_logins = [k for k, v in self.login_attempts.items()
                        if v['first_attempt'] < cutoff and
                        (v['locked_until'] is None or v['locked_until'] < current_time)]
        for k in stale_logins:
            del self.login_attempts[k]
        stale_api = [k for k, v in self.api_requests.items()
                     if not v['requests'] or max(v['requests']) < cutoff]
        for k in stale_api:
            del self.api_requests[k]
        self._last_cleanup = current_time


def attempt_limit(f):
    """Decorator for credential endpoints; a successful call clears the counter"""
    @wraps(f)
    def wrapped(*args, **kwargs):
        limiter = current_app.extensions['rate_limiter']
        identifier = client_address()
        limiter.check_attempt(identifier)
        result = f(*args, **kwargs)
        limiter.reset_attempts(identifier)
        return result
    return wrapped
