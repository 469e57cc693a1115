from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

DEV_CATEGORIES = {
    'universal': [
        {
            'id': 'fruit',
            'name': 'Fruit',
            'entries': ['Apple', 'Banana', 'Orange', 'Kiwi', 'Mango',
                        'Grapefruit', 'Pineapple', 'Peach', 'Pear', 'Cherry'],
        },
        {
            'id': 'animals',
            'name': 'Animals',
            'entries': ['Dog', 'Cat', 'Elephant', 'Lion', 'Tiger',
                        'Bear', 'Rabbit', 'Horse', 'Cow', 'Pig'],
        },
        {
            'id': 'colors',
            'name': 'Colors',
            'entries': ['Red', 'Blue', 'Green', 'Yellow', 'Purple',
                        'Orange', 'Pink', 'Brown', 'Black', 'White'],
        },
    ],
    'custom': {},
}


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    from surveysez.main import main
    flask_app.register_blueprint(main)

    from surveysez.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # Register Socket.IO event handlers
    from surveysez.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database with the starter categories."""
        from surveysez.services.games.persistence import SqlStorage
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            SqlStorage().save_categories(DEV_CATEGORIES)
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
