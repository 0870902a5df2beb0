from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from sqlalchemy import func

from froggyhub import db
from froggyhub.models import WishlistItem
from froggyhub.api.events import get_event_for_member, clean_wishlist_entry
from froggyhub.services.events.claims import ClaimError, claim_item, release_item
from froggyhub.services.events.broadcast import emit_change


wishlist = Blueprint('wishlist', __name__)


def _item_or_404(event, item_id):
    return WishlistItem.query.filter_by(id=item_id, event_id=event.id).first_or_404()


@wishlist.route('/<int:event_id>/wishlist', methods=['GET'])
@login_required
def list_items(event_id):
    event = get_event_for_member(event_id)
    return jsonify([i.to_dict() for i in event.wishlist_items])


@wishlist.route('/<int:event_id>/wishlist', methods=['POST'])
@login_required
def add_item(event_id):
    event = get_event_for_member(event_id, owner_only=True)
    entry = clean_wishlist_entry(request.get_json(silent=True) or {})
    if not entry:
        return jsonify({'error': 'title or url is required'}), 400

    max_items = int(current_app.config.get('MAX_WISHLIST_ITEMS', 100))
    count = WishlistItem.query.filter_by(event_id=event.id).count()
    if count >= max_items:
        return jsonify({'error': f'At most {max_items} wishlist items'}), 400

    last = db.session.query(func.max(WishlistItem.position)).filter(WishlistItem.event_id == event.id).scalar() or 0
    title, url = entry
    item = WishlistItem(event_id=event.id, position=last + 1, title=title, url=url)
    db.session.add(item)
    db.session.commit()
    emit_change('wishlist', event.id, 'INSERT', new=item.to_dict())
    return jsonify(item.to_dict()), 201


@wishlist.route('/<int:event_id>/wishlist/<int:item_id>', methods=['PUT', 'PATCH'])
@login_required
def edit_item(event_id, item_id):
    event = get_event_for_member(event_id, owner_only=True)
    item = _item_or_404(event, item_id)
    entry = clean_wishlist_entry(request.get_json(silent=True) or {})
    if not entry:
        return jsonify({'error': 'title or url is required'}), 400

    old = item.to_dict()
    item.title, item.url = entry
    db.session.add(item)
    db.session.commit()
    emit_change('wishlist', event.id, 'UPDATE', new=item.to_dict(), old=old)
    return jsonify(item.to_dict())


@wishlist.route('/<int:event_id>/wishlist/<int:item_id>', methods=['DELETE'])
@login_required
def delete_item(event_id, item_id):
    event = get_event_for_member(event_id, owner_only=True)
    item = _item_or_404(event, item_id)
    old = item.to_dict()
    db.session.delete(item)
    db.session.commit()
    emit_change('wishlist', event.id, 'DELETE', old=old)
    return jsonify({'message': 'Item deleted'})


@wishlist.route('/<int:event_id>/wishlist', methods=['DELETE'])
@login_required
def clear_items(event_id):
    event = get_event_for_member(event_id, owner_only=True)
    removed = [i.to_dict() for i in event.wishlist_items]
    WishlistItem.query.filter_by(event_id=event.id).delete()
    db.session.commit()
    current_app.logger.info(f"[wishlist-clear] event={event.id} removed={len(removed)}")
    for old in removed:
        emit_change('wishlist', event.id, 'DELETE', old=old)
    return jsonify({'removed': len(removed)})


def _joined_guest(event):
    return event.guest_for_user(current_user.id)


@wishlist.route('/<int:event_id>/wishlist/<int:item_id>/claim', methods=['POST'])
@login_required
def claim(event_id, item_id):
    event = get_event_for_member(event_id)
    guest = _joined_guest(event)
    if not guest:
        return jsonify({'error': 'not_joined'}), 403
    item = _item_or_404(event, item_id)
    try:
        changed = claim_item(item, guest)
    except ClaimError as exc:
        return jsonify({'error': exc.error}), exc.status
    for it, old in changed:
        emit_change('wishlist', event.id, 'UPDATE', new=it.to_dict(), old=old)
    return jsonify(item.to_dict())


@wishlist.route('/<int:event_id>/wishlist/<int:item_id>/release', methods=['POST'])
@login_required
def release(event_id, item_id):
    event = get_event_for_member(event_id)
    guest = _joined_guest(event)
    if not guest:
        return jsonify({'error': 'not_joined'}), 403
    item = _item_or_404(event, item_id)
    try:
        old = release_item(item, guest)
    except ClaimError as exc:
        return jsonify({'error': exc.error}), exc.status
    if old:
        emit_change('wishlist', event.id, 'UPDATE', new=item.to_dict(), old=old)
    return jsonify(item.to_dict())
