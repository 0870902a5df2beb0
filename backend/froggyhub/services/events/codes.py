import re
import secrets
from datetime import timedelta
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from flask import current_app

from froggyhub import db
from froggyhub.models import Event, utcnow

CODE_LENGTH = 6
_NON_DIGITS = re.compile(r'\D')


class CodeError(Exception):
    status = 400
    error = 'bad_code'


class BadCode(CodeError):
    pass


class CodeNotFound(CodeError):
    status = 404
    error = 'not_found'


class CodeExpired(CodeError):
    status = 410
    error = 'code_expired'


class CodeGenerationError(CodeError):
    status = 503
    error = 'code_generation_failed'


def generate_code() -> str:
    """A random 6-digit code in 100000..999999 (no leading zero)."""
    return str(100000 + secrets.randbelow(900000))


def normalize_code(raw) -> str:
    """Strip everything but digits and keep at most the first six."""
    return _NON_DIGITS.sub('', str(raw or ''))[:CODE_LENGTH]


def is_valid_code(code: str) -> bool:
    return len(code) == CODE_LENGTH and code.isdigit()


def unique_join_code(attempts=None) -> str:
    if attempts is None:
        attempts = int(current_app.config.get('JOIN_CODE_ATTEMPTS', 5))
    for _ in range(max(1, attempts)):
        candidate = generate_code()
        if not Event.query.filter_by(join_code=candidate).first():
            return candidate
    current_app.logger.warning(f"[code-gen] no free code after {attempts} attempts")
    raise CodeGenerationError()


def code_expiry(now=None):
    ttl_days = int(current_app.config.get('CODE_TTL_DAYS', 14))
    return (now or utcnow()) + timedelta(days=ttl_days)


def resolve_code(raw, now=None) -> Event:
    """Look up an event by join code.

    Raises BadCode (400) for anything that is not six digits after
    normalization, CodeNotFound (404) and CodeExpired (410).
    """
    code = normalize_code(raw)
    if not is_valid_code(code):
        raise BadCode()
    event = Event.query.filter_by(join_code=code).first()
    if not event:
        raise CodeNotFound()
    if event.code_expired(now):
        raise CodeExpired()
    return event


def rotate_code(event: Event) -> Event:
    event.join_code = unique_join_code()
    event.code_expires_at = code_expiry()
    db.session.add(event)
    db.session.commit()
    current_app.logger.info(f"[code-rotate] event={event.id} new code issued")
    return event


def build_public_url(param: str, value: str) -> str:
    """PUBLIC_BASE_URL with `param` set to `value`, other query params kept."""
    base = current_app.config.get('PUBLIC_BASE_URL') or '/'
    parts = urlsplit(base)
    query = [(k, v) for k, v in parse_qsl(parts.query) if k != param]
    query.append((param, value))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def build_invite_url(code: str) -> str:
    return build_public_url('code', code)


def purge_expired_codes(now=None) -> int:
    now = now or utcnow()
    count = (
        Event.query
        .filter(Event.join_code.isnot(None), Event.code_expires_at <= now)
        .update({'join_code': None, 'code_expires_at': None}, synchronize_session=False)
    )
    db.session.commit()
    current_app.logger.info(f"[code-purge] cleared={count}")
    return count
