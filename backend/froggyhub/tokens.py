"""Signed tokens: bearer tokens for API clients without a session cookie,
and single-use login links for passwordless sign-in."""

import secrets

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from froggyhub import db

_SALT = 'froggyhub-auth'
_LINK_SALT = 'froggyhub-login-link'


def _serializer(salt=_SALT) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=salt)


def _load(token, salt, max_age, label):
    try:
        return _serializer(salt).loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info(f'[auth] expired {label}')
        return None
    except BadSignature:
        return None


def issue_token(user) -> str:
    return _serializer().dumps({'uid': user.id, 'v': user.token_version or 0})


def load_user_from_token(token):
    """Return the User for a valid token, or None if it is bad, expired or revoked."""
    from froggyhub.models import User
    if not token:
        return None
    max_age = int(current_app.config.get('TOKEN_MAX_AGE_SEC', 30 * 24 * 3600))
    payload = _load(token, _SALT, max_age, 'bearer token')
    uid = payload.get('uid') if isinstance(payload, dict) else None
    if uid is None:
        return None
    user = db.session.get(User, int(uid))
    if user is None or payload.get('v', 0) != (user.token_version or 0):
        return None
    return user


def revoke_tokens(user) -> None:
    user.token_version = (user.token_version or 0) + 1
    db.session.add(user)
    db.session.commit()


def issue_login_link_token(user) -> str:
    """Rotate the user's login nonce and sign it; earlier links stop working."""
    user.login_nonce = secrets.token_hex(16)
    db.session.add(user)
    db.session.commit()
    return _serializer(_LINK_SALT).dumps({'uid': user.id, 'n': user.login_nonce})


def consume_login_link_token(token):
    """Return the User for a fresh, unused link token and burn it; otherwise None."""
    from froggyhub.models import User
    if not token:
        return None
    max_age = int(current_app.config.get('LOGIN_LINK_MAX_AGE_SEC', 15 * 60))
    payload = _load(token, _LINK_SALT, max_age, 'login link')
    if not isinstance(payload, dict) or payload.get('uid') is None:
        return None
    nonce = payload.get('n')
    if not nonce:
        return None
    burned = (
        User.query
        .filter_by(id=int(payload['uid']), login_nonce=nonce)
        .update({'login_nonce': None}, synchronize_session=False)
    )
    db.session.commit()
    if not burned:
        return None
    return db.session.get(User, int(payload['uid']))
