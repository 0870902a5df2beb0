from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from flask_login import current_user
from froggyhub import socketio, db
from froggyhub.models import Event
from froggyhub.tokens import load_user_from_token
from froggyhub.services.events.broadcast import owner_room, guest_room
from typing import Dict, Any


_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _resolve_user(data):
    """Session cookie first, then a bearer token from the payload or the connect auth."""
    if current_user.is_authenticated:
        return current_user._get_current_object()
    ctx = _sid_to_ctx.get(_get_sid()) or {}
    token = (data or {}).get('token') or ctx.get('token')
    return load_user_from_token(token)


def handle_connect(auth=None):
    token = auth.get('token') if isinstance(auth, dict) else None
    _sid_to_ctx[_get_sid()] = {'token': token, 'rooms': set()}
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*_args):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if ctx and ctx.get('rooms'):
        current_app.logger.debug(f"[realtime] disconnect rooms={sorted(ctx['rooms'])}")


def handle_subscribe_event(data=None):
    try:
        event_id = int((data or {}).get('event_id'))
    except (TypeError, ValueError):
        emit('error', {'message': 'event_id is required'})
        return

    user = _resolve_user(data)
    if user is None:
        emit('error', {'message': 'auth_required'})
        return

    event = db.session.get(Event, event_id)
    if not event:
        emit('error', {'message': 'not_found'})
        return

    if event.owner_id == user.id:
        role, room = 'owner', owner_room(event_id)
    elif event.guest_for_user(user.id):
        role, room = 'guest', guest_room(event_id)
    else:
        current_app.logger.info(f"[realtime] denied user={user.id} event={event_id}")
        emit('error', {'message': 'forbidden'})
        return

    join_room(room)
    _sid_to_ctx.setdefault(_get_sid(), {'token': None, 'rooms': set()})['rooms'].add(room)
    emit('subscribed', {'event_id': event_id, 'role': role})


def handle_unsubscribe_event(data=None):
    try:
        event_id = int((data or {}).get('event_id'))
    except (TypeError, ValueError):
        emit('error', {'message': 'event_id is required'})
        return
    ctx = _sid_to_ctx.get(_get_sid()) or {'rooms': set()}
    for room in (owner_room(event_id), guest_room(event_id)):
        leave_room(room)
        ctx['rooms'].discard(room)
    emit('unsubscribed', {'event_id': event_id})


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'subscribe_event': handle_subscribe_event,
        'unsubscribe_event': handle_unsubscribe_event,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for name, handler in handlers.items():
            socketio.on_event(name, handler, namespace=namespace)
