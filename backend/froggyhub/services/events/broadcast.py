"""Realtime change feed for an event.

Owners subscribe to `event:<id>:owner` and receive full rows. Guests
subscribe to `event:<id>:guests` and receive rows stripped down to what
the guest screens render.
"""

from flask import current_app

from froggyhub import socketio

NAMESPACE = '/ws'
_PUBLIC_EVENT_KEYS = ('id', 'title', 'date', 'time', 'address', 'dress_code', 'bring', 'notes', 'join_code')


def owner_room(event_id: int) -> str:
    return f"event:{event_id}:owner"


def guest_room(event_id: int) -> str:
    return f"event:{event_id}:guests"


def sanitize_wishlist(row):
    if not row:
        return None
    return {
        'id': row.get('id'),
        'title': row.get('title'),
        'url': row.get('url'),
        'claimed_by': row.get('claimed_by_name'),
    }


def sanitize_guest(row):
    if not row:
        return None
    return {'name': row.get('name'), 'rsvp': row.get('rsvp')}


def sanitize_event(row):
    if not row:
        return None
    return {k: row.get(k) for k in _PUBLIC_EVENT_KEYS}


_SANITIZERS = {
    'wishlist': sanitize_wishlist,
    'guests': sanitize_guest,
    'event': sanitize_event,
}


def emit_change(kind: str, event_id: int, event_type: str, new=None, old=None) -> None:
    """Emit `<kind>_change` to both rooms of an event.

    kind is one of wishlist, guests, event; event_type is INSERT, UPDATE or DELETE.
    """
    sanitize = _SANITIZERS[kind]
    name = f"{kind}_change"
    socketio.emit(name, {
        'event_id': event_id,
        'event_type': event_type,
        'new': new,
        'old': old,
    }, to=owner_room(event_id), namespace=NAMESPACE)
    socketio.emit(name, {
        'event_id': event_id,
        'event_type': event_type,
        'new': sanitize(new),
        'old': sanitize(old),
    }, to=guest_room(event_id), namespace=NAMESPACE)
    current_app.logger.debug(f"[realtime] {name} event={event_id} type={event_type}")
