from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from sqlalchemy.exc import SQLAlchemyError
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from froggyhub.main import main
    flask_app.register_blueprint(main, url_prefix='/api/auth')

    from froggyhub.routes import me
    flask_app.register_blueprint(me, url_prefix='/api/me')

    from froggyhub.api.events import events
    from froggyhub.api.wishlist import wishlist
    flask_app.register_blueprint(events, url_prefix='/api/events')
    flask_app.register_blueprint(wishlist, url_prefix='/api/events')

    from froggyhub.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from froggyhub.models import User
    from froggyhub.tokens import load_user_from_token

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.request_loader
    def load_user_from_request(req):
        auth = req.headers.get('Authorization', '')
        if not auth.startswith('Bearer '):
            return None
        return load_user_from_token(auth[7:])

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'unauthorized'}), 401

    @flask_app.errorhandler(403)
    def forbidden(_exc):
        return jsonify({'error': 'forbidden'}), 403

    @flask_app.errorhandler(404)
    def not_found(_exc):
        return jsonify({'error': 'not_found'}), 404

    @flask_app.errorhandler(405)
    def method_not_allowed(_exc):
        return jsonify({'error': 'method_not_allowed'}), 405

    @flask_app.errorhandler(SQLAlchemyError)
    def database_error(exc):
        db.session.rollback()
        flask_app.logger.exception(f"[db] {exc.__class__.__name__}")
        return jsonify({'error': 'server_error'}), 500

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from froggyhub.models import Event
        from froggyhub.services.events.codes import unique_join_code, code_expiry
        from datetime import datetime, timedelta
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            users = []
            for nick in ['frog1', 'frog2', 'frog3']:
                user = User(email=f'{nick}@example.com', nickname=nick)
                user.set_password('password')
                db.session.add(user)
                users.append(user)
            db.session.flush()

            party = Event(
                owner_id=users[0].id,
                title='Pond party',
                event_at=(datetime.now() + timedelta(days=7)).replace(hour=19, minute=0, second=0, microsecond=0),
                address='Lily pad 1',
                join_code=unique_join_code(),
                code_expires_at=code_expiry(),
            )
            db.session.add(party)
            db.session.commit()
            print(f'Database has been reset and seeded! Demo join code: {party.join_code}')

    @click.command('purge-expired-codes')
    def purge_expired_codes_command():
        """Clears join codes whose expiry has passed."""
        from froggyhub.services.events.codes import purge_expired_codes
        with flask_app.app_context():
            count = purge_expired_codes()
            print(f'Cleared {count} expired join code(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(purge_expired_codes_command)

    return flask_app
