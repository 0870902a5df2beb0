from froggyhub import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import json

RSVP_CHOICES = ('yes', 'maybe', 'no')


def utcnow():
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    nickname = db.Column(db.String(64), nullable=False, default='')
    avatar_url = db.Column(db.String(512), nullable=True)
    password_hash = db.Column(db.String(256), nullable=False)
    # Bumped on logout; bearer tokens carry it and die with the old value
    token_version = db.Column(db.Integer, nullable=False, default=0)
    # Current login-link nonce; rotated when a link is issued or used
    login_nonce = db.Column(db.String(32), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password or '')

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'nickname': self.nickname,
            'avatar_url': self.avatar_url,
        }


class Event(db.Model):
    __tablename__ = 'event'
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    event_at = db.Column(db.DateTime, nullable=False)  # wall-clock time at the venue
    address = db.Column(db.String(500), nullable=False, default='')
    dress_code = db.Column(db.String(200), nullable=False, default='')
    bring = db.Column(db.String(500), nullable=False, default='')
    notes = db.Column(db.Text, nullable=False, default='')
    join_code = db.Column(db.String(6), unique=True, index=True, nullable=True)
    code_expires_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner = db.relationship('User', backref='owned_events')
    guests = db.relationship('Guest', back_populates='event', cascade='all, delete-orphan',
                             order_by='Guest.id')
    wishlist_items = db.relationship('WishlistItem', back_populates='event', cascade='all, delete-orphan',
                                     order_by='WishlistItem.position')

    @property
    def date(self):
        return self.event_at.strftime('%Y-%m-%d') if self.event_at else None

    @property
    def time(self):
        return self.event_at.strftime('%H:%M') if self.event_at else None

    def code_expired(self, now=None):
        if not self.code_expires_at:
            return False
        return (now or utcnow()) >= self.code_expires_at

    def guest_for_user(self, user_id):
        if user_id is None:
            return None
        return Guest.query.filter_by(event_id=self.id, user_id=user_id).first()

    def is_member(self, user_id):
        return user_id == self.owner_id or self.guest_for_user(user_id) is not None

    def to_public_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'date': self.date,
            'time': self.time,
            'address': self.address,
            'dress_code': self.dress_code,
            'bring': self.bring,
            'notes': self.notes,
            'join_code': self.join_code,
        }

    def to_dict(self):
        data = self.to_public_dict()
        data.update({
            'owner_id': self.owner_id,
            'event_at': _iso(self.event_at),
            'code_expires_at': _iso(self.code_expires_at),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        })
        return data


class Guest(db.Model):
    __tablename__ = 'guest'
    __table_args__ = (db.UniqueConstraint('event_id', 'name', name='uq_guest_event_name'),)
    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey('event.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True, index=True)
    name = db.Column(db.String(64), nullable=False)
    rsvp = db.Column(db.String(8), nullable=False, default='no')
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    event = db.relationship('Event', back_populates='guests')
    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'event_id': self.event_id,
            'user_id': self.user_id,
            'name': self.name,
            'rsvp': self.rsvp,
        }


class WishlistItem(db.Model):
    __tablename__ = 'wishlist_item'
    # One gift per guest; NULLs (unclaimed rows) do not collide
    __table_args__ = (db.Index('uq_wishlist_item_claimed_by', 'claimed_by_id', unique=True),)
    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey('event.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    title = db.Column(db.String(200), nullable=False, default='')
    url = db.Column(db.String(1000), nullable=False, default='')
    claimed_by_id = db.Column(db.Integer, db.ForeignKey('guest.id', ondelete='SET NULL'), nullable=True)

    event = db.relationship('Event', back_populates='wishlist_items')
    claimed_by = db.relationship('Guest', foreign_keys=[claimed_by_id])

    @property
    def is_empty(self):
        return not (self.title or self.url)

    def to_dict(self):
        return {
            'id': self.id,
            'event_id': self.event_id,
            'position': self.position,
            'title': self.title,
            'url': self.url,
            'claimed_by': self.claimed_by_id,
            'claimed_by_name': self.claimed_by.name if self.claimed_by else None,
        }


class CookieConsent(db.Model):
    __tablename__ = 'cookie_consent'
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), primary_key=True)
    choice = db.Column(db.Text, nullable=False)  # JSON-encoded {necessary, analytics}
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        try:
            choice = json.loads(self.choice) if self.choice else None
        except ValueError:
            choice = None
        return {'choice': choice}
