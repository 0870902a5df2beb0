from typing import List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from froggyhub import db
from froggyhub.models import Guest, WishlistItem


class ClaimError(Exception):
    status = 400
    error = 'claim_error'


class EmptyItem(ClaimError):
    error = 'empty_item'


class AlreadyClaimed(ClaimError):
    status = 409
    error = 'already_claimed'


class ClaimConflict(ClaimError):
    status = 409
    error = 'claim_conflict'


class NotClaimant(ClaimError):
    status = 403
    error = 'not_claimant'


def _release_others(item: WishlistItem, guest: Guest) -> List[Tuple[WishlistItem, dict]]:
    """Clear the guest's claims on other items of the event. Returns (item, old_row) pairs."""
    previous = (
        WishlistItem.query
        .filter(WishlistItem.event_id == item.event_id,
                WishlistItem.claimed_by_id == guest.id,
                WishlistItem.id != item.id)
        .all()
    )
    changed = [(it, it.to_dict()) for it in previous]
    for it in previous:
        it.claimed_by_id = None
        db.session.add(it)
    db.session.flush()
    return changed


def claim_item(item: WishlistItem, guest: Guest) -> List[Tuple[WishlistItem, dict]]:
    """Claim `item` for `guest`.

    A guest holds at most one gift: any other item the guest had claimed in
    the same event is released in the same transaction. The guest row is
    locked first so claims by one guest run one at a time, and the unique
    index on wishlist_item.claimed_by_id rejects a second concurrent gift.
    The claim itself is a conditional UPDATE on an unclaimed row, so of two
    racing guests exactly one wins.

    Returns (item, old_row) pairs for every row that changed.
    """
    if item.is_empty:
        raise EmptyItem()
    if item.claimed_by_id == guest.id:
        return []
    if item.claimed_by_id is not None:
        raise AlreadyClaimed()

    Guest.query.filter_by(id=guest.id).with_for_update().one()
    before = item.to_dict()
    try:
        released = _release_others(item, guest)
        won = (
            WishlistItem.query
            .filter_by(id=item.id, claimed_by_id=None)
            .update({'claimed_by_id': guest.id}, synchronize_session=False)
        )
        if not won:
            db.session.rollback()
            current_app.logger.info(f"[claim] lost race item={item.id} guest={guest.id}")
            raise AlreadyClaimed()
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.info(f"[claim] concurrent claim by guest={guest.id} item={item.id}")
        raise ClaimConflict()

    current_app.logger.info(
        f"[claim] item={item.id} guest={guest.id} released={[it.id for it, _ in released]}"
    )
    return released + [(item, before)]


def release_item(item: WishlistItem, guest: Guest) -> Optional[dict]:
    """Release the guest's own claim. Returns the old row, or None if nothing changed."""
    if item.claimed_by_id is None:
        return None
    if item.claimed_by_id != guest.id:
        raise NotClaimant()
    old = item.to_dict()
    item.claimed_by_id = None
    db.session.add(item)
    db.session.commit()
    current_app.logger.info(f"[release] item={item.id} guest={guest.id}")
    return old
