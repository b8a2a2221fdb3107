"""
Yandex ID OAuth (authorization-code flow).

The frontend sends the user to ``authorization_url()``; Yandex redirects
back with a code which the API exchanges for an access token and then for
the user's identity.
"""
import logging
import re
import secrets

import requests
from oauthlib.oauth2 import OAuth2Error, WebApplicationClient

from errors import OAuthError

logger = logging.getLogger(__name__)

YANDEX_AUTHORIZE_URL = "https://oauth.yandex.ru/authorize"
YANDEX_TOKEN_URL = "https://oauth.yandex.ru/token"
YANDEX_USERINFO_URL = "https://login.yandex.ru/info?format=json"
YANDEX_AVATAR_URL = "https://avatars.yandex.net/get-yapic/{avatar_id}/islands-200"
DEMO_CODE_PREFIX = "demo_"
REQUEST_TIMEOUT = 10


class YandexOAuth:

    def __init__(self, app=None):
        self.client_id = None
        self.client_secret = None
        self.redirect_uri = None
        self.demo_mode = False
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.client_id = app.config.get('YANDEX_CLIENT_ID')
        self.client_secret = app.config.get('YANDEX_CLIENT_SECRET')
        self.redirect_uri = app.config.get('YANDEX_REDIRECT_URI')
        self.demo_mode = app.config.get('OAUTH_DEMO_MODE', False)
        if not self.configured:
            logger.warning("Yandex OAuth credentials not configured. Set YANDEX_CLIENT_ID, "
                           "YANDEX_CLIENT_SECRET and YANDEX_REDIRECT_URI.")
        app.extensions['yandex_oauth'] = self

    @property
    def configured(self):
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    def authorization_url(self, state=None):
        """Return (url, state) for sending the browser to Yandex"""
        self._require_configured()
        state = state or secrets.token_urlsafe(16)
        client = WebApplicationClient(self.client_id)
        url = client.prepare_request_uri(
            YANDEX_AUTHORIZE_URL,
            redirect_uri=self.redirect_uri,
            state=state,
        )
        return url, state

    def fetch_identity(self, code):
        """
        Exchange an authorization code for the Yandex user's identity.

        Returns:
            dict with provider, provider_id, email, full_name, avatar
        """
        if self.demo_mode and code.startswith(DEMO_CODE_PREFIX):
            return self._demo_identity(code)

        self._require_configured()
        client = WebApplicationClient(self.client_id)
        token_url, headers, body = client.prepare_token_request(
            YANDEX_TOKEN_URL,
            redirect_url=self.redirect_uri,
            code=code,
            client_secret=self.client_secret,
        )
        try:
            token_response = requests.post(token_url, headers=headers, data=body, timeout=REQUEST_TIMEOUT)
        except requests.exceptions.RequestException as e:
            logger.error(f"Yandex token exchange failed: {str(e)}")
            raise OAuthError('Could not reach Yandex OAuth') from e

        if token_response.status_code != 200:
            logger.warning(f"Yandex token exchange returned {token_response.status_code}")
            raise OAuthError(f'Yandex token exchange failed: {token_response.status_code}')

        try:
            token = client.parse_request_body_response(token_response.text)
        except OAuth2Error as e:
            logger.warning(f"Yandex token response rejected: {e.error}")
            raise OAuthError(f'Yandex token exchange failed: {e.error}') from e

        try:
            userinfo_response = requests.get(
                YANDEX_USERINFO_URL,
                headers={'Authorization': f"OAuth {token['access_token']}"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Yandex user info request failed: {str(e)}")
            raise OAuthError('Could not reach Yandex ID') from e

        if userinfo_response.status_code != 200:
            logger.warning(f"Yandex user info returned {userinfo_response.status_code}")
            raise OAuthError(f'Yandex user info failed: {userinfo_response.status_code}')

        try:
            userinfo = userinfo_response.json()
        except ValueError as e:
            raise OAuthError('Yandex returned an invalid user info response') from e

        email = userinfo.get('default_email') or next(iter(userinfo.get('emails') or []), None)
        if not email or not userinfo.get('id'):
            raise OAuthError('Yandex account has no email address')

        avatar_id = userinfo.get('default_avatar_id')
        return {
            'provider': 'yandex',
            'provider_id': str(userinfo['id']),
            'email': email,
            'full_name': (userinfo.get('real_name') or userinfo.get('display_name')
                          or userinfo.get('first_name') or 'Yandex User'),
            'avatar': YANDEX_AVATAR_URL.format(avatar_id=avatar_id) if avatar_id else None,
        }

    def _demo_identity(self, code):
        suffix = re.sub(r'[^A-Za-z0-9]', '', code[len(DEMO_CODE_PREFIX):])[:40].lower() or 'user'
        logger.info(f"Using demo Yandex identity for code {code}")
        return {
            'provider': 'yandex',
            'provider_id': f'demo_yandex_{suffix}',
            'email': f'yandex.demo.{suffix}@yandex.ru',
            'full_name': 'Yandex Demo User',
            'avatar': None,
        }

    def _require_configured(self):
        if not self.configured:
            raise OAuthError('Yandex OAuth is not configured')
