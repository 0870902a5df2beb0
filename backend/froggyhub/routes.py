from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from froggyhub import db
from froggyhub.models import CookieConsent
import json

me = Blueprint('me', __name__)

CONSENT_KEYS = ('necessary', 'analytics')


@me.route('/cookie-consent', methods=['GET'])
@login_required
def get_cookie_consent():
    consent = db.session.get(CookieConsent, current_user.id)
    if not consent:
        return jsonify({'choice': None})
    return jsonify(consent.to_dict())


@me.route('/cookie-consent', methods=['PUT'])
@login_required
def put_cookie_consent():
    data = request.get_json(silent=True) or {}
    choice = data.get('choice')
    if not isinstance(choice, dict) or any(not isinstance(choice.get(k), bool) for k in CONSENT_KEYS):
        return jsonify({'error': 'choice must be {necessary: bool, analytics: bool}'}), 400

    clean = {k: choice[k] for k in CONSENT_KEYS}
    consent = db.session.get(CookieConsent, current_user.id)
    if consent is None:
        consent = CookieConsent(user_id=current_user.id)
    consent.choice = json.dumps(clean)
    db.session.add(consent)
    db.session.commit()
    return jsonify(consent.to_dict())
