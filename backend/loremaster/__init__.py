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

SAMPLE_QUESTIONS = [
    ('What is the capital of France?', 'Paris', 'Lyon', 'Marseille', 'Nice', 'geography', 'Easy'),
    ('Which planet is known as the Red Planet?', 'Mars', 'Venus', 'Jupiter', 'Mercury', 'science', 'Easy'),
    ('Who wrote "Pride and Prejudice"?', 'Jane Austen', 'Emily Bronte', 'Mary Shelley', 'George Eliot', 'literature', 'Medium'),
    ('What is the chemical symbol for tungsten?', 'W', 'Tu', 'Tn', 'Wo', 'science', 'Hard'),
    ('In which year did the Berlin Wall fall?', '1989', '1987', '1991', '1985', 'history', 'Medium'),
    ('Which river flows through Budapest?', 'Danube', 'Rhine', 'Vistula', 'Elbe', 'geography', 'Medium'),
]


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    origins = flask_app.config.get('CORS_ORIGINS') or '*'

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    from loremaster.main import main
    flask_app.register_blueprint(main)

    from loremaster.api.trivia import trivia
    flask_app.register_blueprint(trivia, url_prefix='/api/trivia')

    from loremaster.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from loremaster.services.trivia import build_controller, start_ticker
    controller = build_controller(flask_app)
    start_ticker(flask_app, controller)

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from loremaster.models import QuestionCategory, TriviaQuestion
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            categories = set()
            for text, correct, w1, w2, w3, category, difficulty in SAMPLE_QUESTIONS:
                db.session.add(TriviaQuestion(
                    question=text, correct_answer=correct,
                    wrong_answer1=w1, wrong_answer2=w2, wrong_answer3=w3,
                    category_id=category, difficulty=difficulty,
                ))
                categories.add(category)
            for category in sorted(categories):
                db.session.add(QuestionCategory(id=category, name=category.title()))

            db.session.commit()
            click.echo('Database has been reset and seeded!')

    @click.command('import-questions')
    @click.argument('csv_path', type=click.Path(exists=True, dir_okay=False))
    def import_questions_command(csv_path):
        """Inserts questions from a CSV file into the database."""
        from loremaster.services.trivia.importer import parse_csv
        with open(csv_path, encoding='utf-8') as fh:
            questions, skipped = parse_csv(fh.read())
        for reason in skipped:
            click.echo(f'Skipped {reason}', err=True)
        added = controller.selector.store.bulk_insert(questions)
        click.echo(f'Imported {added} questions.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(import_questions_command)

    return flask_app
