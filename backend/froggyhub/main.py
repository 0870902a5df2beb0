from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy.exc import IntegrityError
from froggyhub import db
from froggyhub.models import User
from froggyhub.tokens import issue_token, revoke_tokens, issue_login_link_token, consume_login_link_token
from froggyhub.services.events.codes import build_public_url

main = Blueprint('main', __name__)


@main.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    nickname = (data.get('nickname') or '').strip()
    if not all([email, password, nickname]):
        return jsonify({'error': 'Email, password and nickname are required'}), 400

    min_len = int(current_app.config.get('MIN_PASSWORD_LENGTH', 6))
    if len(password) < min_len:
        return jsonify({'error': f'Password must be at least {min_len} characters'}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'email_taken'}), 409

    user = User(email=email, nickname=nickname)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'email_taken'}), 409
    login_user(user, remember=True)
    current_app.logger.info(f"[auth] registered user={user.id}")
    return jsonify({'user': user.to_dict(), 'token': issue_token(user)}), 201


@main.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    user = User.query.filter_by(email=email).first() if email else None
    if user and user.check_password(data.get('password')):
        login_user(user, remember=True)
        return jsonify({'user': user.to_dict(), 'token': issue_token(user)})
    current_app.logger.info("[auth] failed login")
    return jsonify({'error': 'Invalid email or password'}), 401


def _deliver_login_link(email, link):
    sender = current_app.config.get('LOGIN_LINK_SENDER')
    if callable(sender):
        sender(email, link)
    else:
        current_app.logger.info(f"[login-link] to={email} link={link}")


@main.route('/login-link', methods=['POST'])
def request_login_link():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    if not email:
        return jsonify({'error': 'email is required'}), 400

    user = User.query.filter_by(email=email).first()
    if user:
        token = issue_login_link_token(user)
        _deliver_login_link(user.email, build_public_url('login_token', token))
    else:
        current_app.logger.info("[login-link] unknown email")
    # Same answer either way so the endpoint does not reveal accounts
    return jsonify({'message': 'If the account exists, a login link was sent.'})


@main.route('/login-link/verify', methods=['POST'])
def verify_login_link():
    data = request.get_json(silent=True) or {}
    user = consume_login_link_token(data.get('token'))
    if not user:
        return jsonify({'error': 'invalid_link'}), 401
    login_user(user, remember=True)
    current_app.logger.info(f"[login-link] signed in user={user.id}")
    return jsonify({'user': user.to_dict(), 'token': issue_token(user)})


@main.route('/logout', methods=['POST'])
@login_required
def logout():
    revoke_tokens(current_user._get_current_object())
    logout_user()
    return jsonify({'message': 'Logged out successfully.'})


@main.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})
