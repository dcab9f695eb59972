# api/auth.py
"""
Third-party sign-in through OAuth providers

The handshake itself (state, code exchange, token storage in the session
cookie) is handled by Authlib; this module only registers providers and
turns the resulting profile into a plain-text response.
"""

import logging
from typing import Any, Callable, Dict

from authlib.integrations.base_client import OAuthError
from authlib.integrations.flask_client import OAuth
from flask import Blueprint, Flask, Response, abort, current_app, session, url_for
from requests import RequestException

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

PROVIDERS: Dict[str, Dict[str, Any]] = {
    'facebook': {
        'config_prefix': 'FACEBOOK',
        'access_token_url': 'https://graph.facebook.com/v19.0/oauth/access_token',
        'authorize_url': 'https://www.facebook.com/v19.0/dialog/oauth',
        'api_base_url': 'https://graph.facebook.com/v19.0/',
        'client_kwargs': {'scope': 'email public_profile'},
    },
    'google': {
        'config_prefix': 'GOOGLE',
        'server_metadata_url': 'https://accounts.google.com/.well-known/openid-configuration',
        'client_kwargs': {'scope': 'openid email profile'},
    },
    'github': {
        'config_prefix': 'GITHUB',
        'access_token_url': 'https://github.com/login/oauth/access_token',
        'authorize_url': 'https://github.com/login/oauth/authorize',
        'api_base_url': 'https://api.github.com/',
        'client_kwargs': {'scope': 'read:user user:email'},
    },
}


def _facebook_profile(client, token) -> Dict[str, Any]:
    data = client.get('me', params={'fields': 'id,name,email'}, token=token).json()
    return {'name': data.get('name'), 'email': data.get('email')}


def _google_profile(client, token) -> Dict[str, Any]:
    data = token.get('userinfo') or client.userinfo(token=token)
    return {'name': data.get('name'), 'email': data.get('email')}


def _github_profile(client, token) -> Dict[str, Any]:
    data = client.get('user', token=token).json()
    email = data.get('email')
    if not email:
        # Private addresses are only exposed through the emails endpoint
        emails = client.get('user/emails', token=token).json()
        if not isinstance(emails, list):
            # Error objects such as {"message": "Not Found"} when the scope was refused
            emails = []
        emails = [e for e in emails if isinstance(e, dict)]
        primary = [e for e in emails if e.get('primary')] or emails
        email = primary[0].get('email') if primary else None
    return {'name': data.get('name') or data.get('login'), 'email': email}


PROFILE_FETCHERS: Dict[str, Callable] = {
    'facebook': _facebook_profile,
    'google': _google_profile,
    'github': _github_profile,
}


def init_oauth(app: Flask) -> None:
    """Register every provider that has a client key configured"""
    oauth = OAuth(app)
    app.extensions['oauth_providers'] = oauth
    
    for name, settings in PROVIDERS.items():
        options = dict(settings)
        prefix = options.pop('config_prefix')
        client_id = app.config.get(f'{prefix}_KEY')
        if not client_id:
            app.logger.warning(f"OAuth provider {name} disabled: {prefix}_KEY not set")
            continue
        oauth.register(
            name=name,
            client_id=client_id,
            client_secret=app.config.get(f'{prefix}_SECRET'),
            **options
        )
        app.logger.info(f"OAuth provider {name} registered")


def _client_or_404(provider: str):
    oauth = current_app.extensions['oauth_providers']
    client = oauth.create_client(provider) if provider in PROVIDERS else None
    if client is None:
        abort(404)
    return client


@auth_bp.route('/auth/<provider>', methods=['GET'])
def login(provider):
    """Redirect to the provider's consent page"""
    client = _client_or_404(provider)
    redirect_uri = url_for('auth.callback', provider=provider, _external=True)
    return client.authorize_redirect(redirect_uri)


@auth_bp.route('/auth/<provider>/callback', methods=['GET'])
def callback(provider):
    client = _client_or_404(provider)
    
    try:
        token = client.authorize_access_token()
        profile = PROFILE_FETCHERS[provider](client, token)
    except (OAuthError, RequestException, ValueError) as e:
        logger.warning(f"{provider} login failed: {e}")
        return Response(f"{provider} login failed: {e}", status=500, mimetype='text/plain')
    
    session['user'] = {'provider': provider, **profile}
    logger.info(f"Logged in via {provider}: {profile.get('email')}")
    
    return Response(
        f"Logged in via {provider}\nName: {profile.get('name') or ''}\nEmail: {profile.get('email') or ''}",
        mimetype='text/plain'
    )
