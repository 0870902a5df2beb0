from flask import Blueprint, jsonify, request, current_app, abort
from flask_login import login_required, current_user
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from datetime import datetime
import re

from froggyhub import db
from froggyhub.models import Event, Guest, WishlistItem, RSVP_CHOICES
from froggyhub.services.events.codes import (
    CodeError, resolve_code, unique_join_code, code_expiry, rotate_code, build_invite_url,
)
from froggyhub.services.events.throttle import allow_attempt
from froggyhub.services.events.broadcast import emit_change


events = Blueprint('events', __name__)

_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_TIME_RE = re.compile(r'^\d{2}:\d{2}$')
_RSVP_ORDER = {'yes': 0, 'maybe': 1, 'no': 2}


def _text(data, key, limit=None):
    value = data.get(key)
    if not isinstance(value, str):
        return ''
    value = value.strip()
    return value[:limit] if limit else value


def _event_fields(data):
    """Validate the editable event fields. Returns (fields, error)."""
    title = _text(data, 'title', 200)
    date = _text(data, 'date')
    time_ = _text(data, 'time')
    if not all([title, date, time_]):
        return None, 'title, date and time are required'
    if not _DATE_RE.match(date) or not _TIME_RE.match(time_):
        return None, 'Invalid date or time format'
    try:
        event_at = datetime.strptime(f"{date} {time_}", '%Y-%m-%d %H:%M')
    except ValueError:
        return None, 'Invalid date or time format'
    dress_code = _text(data, 'dress_code', 200) if 'dress_code' in data else _text(data, 'dress', 200)
    return {
        'title': title,
        'event_at': event_at,
        'address': _text(data, 'address', 500),
        'dress_code': dress_code,
        'bring': _text(data, 'bring', 500),
        'notes': _text(data, 'notes'),
    }, None


def _merge_editable(event, data):
    """PATCH body on top of the event's current values; absent keys keep theirs."""
    merged = {
        'title': event.title,
        'date': event.date,
        'time': event.time,
        'address': event.address,
        'dress_code': event.dress_code,
        'bring': event.bring,
        'notes': event.notes,
    }
    if 'dress' in data and 'dress_code' not in data:
        data = dict(data, dress_code=data['dress'])
    merged.update({k: v for k, v in data.items() if k in merged})
    return merged


def clean_wishlist_entry(entry):
    """(title, url) for a wishlist entry, or None when both are blank."""
    if not isinstance(entry, dict):
        return None
    title = _text(entry, 'title', 200)
    url = _text(entry, 'url', 1000)
    if not (title or url):
        return None
    return title, url


def get_event_for_member(event_id, owner_only=False):
    event = Event.query.filter_by(id=event_id).first_or_404()
    if owner_only:
        if event.owner_id != current_user.id:
            abort(403)
    elif not event.is_member(current_user.id):
        abort(403)
    return event


def _lookup_allowed():
    cfg = current_app.config
    key = f"user:{current_user.id}" if current_user.is_authenticated else f"ip:{request.remote_addr}"
    allowed = allow_attempt(
        key,
        int(cfg.get('CODE_LOOKUP_LIMIT', 10)),
        float(cfg.get('CODE_LOOKUP_WINDOW_SEC', 60)),
    )
    if not allowed:
        current_app.logger.info(f"[code-throttle] key={key}")
    return allowed


@events.route('', methods=['POST'])
@login_required
def create_event():
    data = request.get_json(silent=True) or {}
    fields, error = _event_fields(data)
    if error:
        return jsonify({'error': error}), 400

    raw_items = data.get('wishlist') or []
    if not isinstance(raw_items, list):
        return jsonify({'error': 'wishlist must be a list'}), 400
    items = [e for e in (clean_wishlist_entry(r) for r in raw_items) if e]
    max_items = int(current_app.config.get('MAX_WISHLIST_ITEMS', 100))
    if len(items) > max_items:
        return jsonify({'error': f'At most {max_items} wishlist items'}), 400

    try:
        code = unique_join_code()
    except CodeError as exc:
        return jsonify({'error': exc.error}), exc.status

    event = Event(owner_id=current_user.id, join_code=code, code_expires_at=code_expiry(), **fields)
    db.session.add(event)
    db.session.flush()
    for position, (title, url) in enumerate(items, start=1):
        db.session.add(WishlistItem(event_id=event.id, position=position, title=title, url=url))
    db.session.commit()
    current_app.logger.info(f"[event-create] event={event.id} owner={current_user.id} items={len(items)}")

    return jsonify({
        'event': event.to_dict(),
        'wishlist': [i.to_dict() for i in event.wishlist_items],
        'invite_url': build_invite_url(code),
    }), 201


@events.route('/by-code', methods=['GET'])
def event_by_code():
    if not _lookup_allowed():
        return jsonify({'error': 'too_many_attempts'}), 429
    try:
        event = resolve_code(request.args.get('code'))
    except CodeError as exc:
        return jsonify({'error': exc.error}), exc.status
    return jsonify(event.to_public_dict())


def _resolve_guest(event, user_id, name):
    """Find or create the guest row a join should land on.

    Returns (guest, old_row, error). old_row is None for a new guest.
    """
    mine = event.guest_for_user(user_id)
    same_name = Guest.query.filter(
        Guest.event_id == event.id, func.lower(Guest.name) == name.lower()
    ).first()
    if mine:
        if same_name and same_name.id != mine.id:
            return None, None, 'name_taken'
        old = mine.to_dict()
        mine.name = name
        return mine, old, None
    if same_name:
        if same_name.user_id not in (None, user_id):
            return None, None, 'name_taken'
        old = same_name.to_dict()
        same_name.user_id = user_id
        return same_name, old, None
    return Guest(event_id=event.id, user_id=user_id, name=name, rsvp='no'), None, None


@events.route('/join', methods=['POST'])
@login_required
def join_by_code():
    data = request.get_json(silent=True) or {}
    if not _lookup_allowed():
        return jsonify({'error': 'too_many_attempts'}), 429
    try:
        event = resolve_code(data.get('code'))
    except CodeError as exc:
        return jsonify({'error': exc.error}), exc.status

    name = _text(data, 'name', 64) or (current_user.nickname or '').strip()[:64]
    if not name:
        return jsonify({'error': 'name_required'}), 400
    rsvp = data.get('rsvp')
    if rsvp is not None and rsvp not in RSVP_CHOICES:
        return jsonify({'error': 'rsvp must be one of yes, maybe, no'}), 400

    guest, old, error = _resolve_guest(event, current_user.id, name)
    if error:
        return jsonify({'error': error}), 409
    if rsvp is not None:
        guest.rsvp = rsvp
    db.session.add(guest)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'name_taken'}), 409

    current_app.logger.info(f"[join] event={event.id} user={current_user.id} guest={guest.id}")
    emit_change('guests', event.id, 'UPDATE' if old else 'INSERT', new=guest.to_dict(), old=old)
    return jsonify({'event_id': event.id, 'guest': guest.to_dict()})


@events.route('/mine', methods=['GET'])
@login_required
def my_events():
    owned = Event.query.filter_by(owner_id=current_user.id).order_by(Event.event_at).all()
    joined = (
        Event.query.join(Guest)
        .filter(Guest.user_id == current_user.id, Event.owner_id != current_user.id)
        .order_by(Event.event_at)
        .all()
    )
    return jsonify({
        'owned': [e.to_dict() for e in owned],
        'joined': [e.to_public_dict() for e in joined],
    })


@events.route('/<int:event_id>', methods=['GET'])
@login_required
def get_event(event_id):
    event = get_event_for_member(event_id)
    me = event.guest_for_user(current_user.id)
    is_owner = event.owner_id == current_user.id
    return jsonify({
        'event': event.to_dict() if is_owner else event.to_public_dict(),
        'wishlist': [i.to_dict() for i in event.wishlist_items],
        'guests': [g.to_dict() for g in event.guests],
        'guest': me.to_dict() if me else None,
        'is_owner': is_owner,
    })


@events.route('/<int:event_id>', methods=['PUT', 'PATCH'])
@login_required
def update_event(event_id):
    event = get_event_for_member(event_id, owner_only=True)
    data = request.get_json(silent=True) or {}
    if request.method == 'PATCH':
        data = _merge_editable(event, data)
    fields, error = _event_fields(data)
    if error:
        return jsonify({'error': error}), 400

    old = event.to_dict()
    for key, value in fields.items():
        setattr(event, key, value)
    db.session.add(event)
    db.session.commit()
    current_app.logger.info(f"[event-update] event={event.id}")
    emit_change('event', event.id, 'UPDATE', new=event.to_dict(), old=old)
    return jsonify({'event': event.to_dict()})


@events.route('/<int:event_id>/analytics', methods=['GET'])
@login_required
def event_analytics(event_id):
    event = get_event_for_member(event_id, owner_only=True)

    participants = []
    counts = {choice: 0 for choice in RSVP_CHOICES}
    for g in event.guests:
        counts[g.rsvp] = counts.get(g.rsvp, 0) + 1
        participants.append({
            'nickname': (g.user.nickname if g.user and g.user.nickname else g.name),
            'avatar_url': (g.user.avatar_url if g.user else None) or '',
            'rsvp': g.rsvp,
        })
    participants.sort(key=lambda p: _RSVP_ORDER.get(p['rsvp'], 3))

    wishlist = []
    for item in event.wishlist_items:
        taken_by = None
        if item.claimed_by:
            claimant = item.claimed_by
            taken_by = {
                'nickname': (claimant.user.nickname if claimant.user and claimant.user.nickname else claimant.name),
                'avatar_url': (claimant.user.avatar_url if claimant.user else None) or '',
            }
        wishlist.append({'title': item.title, 'url': item.url, 'taken_by': taken_by})

    return jsonify({
        'event': {
            'title': event.title,
            'date': event.date,
            'time': event.time,
            'address': event.address,
            'notes': event.notes,
        },
        'participants': participants,
        'wishlist': wishlist,
        'rsvp_counts': counts,
    })


@events.route('/<int:event_id>/code', methods=['POST'])
@login_required
def regenerate_code(event_id):
    event = get_event_for_member(event_id, owner_only=True)
    old = event.to_dict()
    try:
        rotate_code(event)
    except CodeError as exc:
        return jsonify({'error': exc.error}), exc.status
    emit_change('event', event.id, 'UPDATE', new=event.to_dict(), old=old)
    return jsonify({
        'join_code': event.join_code,
        'code_expires_at': event.to_dict()['code_expires_at'],
        'invite_url': build_invite_url(event.join_code),
    })


@events.route('/<int:event_id>/rsvp', methods=['POST'])
@login_required
def set_rsvp(event_id):
    event = Event.query.filter_by(id=event_id).first_or_404()
    data = request.get_json(silent=True) or {}
    rsvp = data.get('rsvp')
    if rsvp not in RSVP_CHOICES:
        return jsonify({'error': 'rsvp must be one of yes, maybe, no'}), 400
    guest = event.guest_for_user(current_user.id)
    if not guest:
        return jsonify({'error': 'not_joined'}), 403

    old = guest.to_dict()
    guest.rsvp = rsvp
    db.session.add(guest)
    db.session.commit()
    emit_change('guests', event.id, 'UPDATE', new=guest.to_dict(), old=old)
    return jsonify({'guest': guest.to_dict()})


@events.route('/<int:event_id>/guests', methods=['GET'])
@login_required
def list_guests(event_id):
    event = get_event_for_member(event_id)
    return jsonify([g.to_dict() for g in event.guests])
