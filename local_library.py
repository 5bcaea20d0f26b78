"""
Local library catalog: genre pages.

Flask application factory wiring the genre views to the ORM, form
protection, security headers, logging and the error pages.

Run:
    pip install -e .
    flask --app local_library init-db
    flask --app local_library run

Open http://127.0.0.1:5000/catalog/genres
"""
import logging
import os
from pathlib import Path
from typing import Optional

import click
from flask import Flask, has_request_context, render_template, request
from flask.cli import with_appcontext
from flask_talisman import Talisman
from flask_wtf import CSRFProtect
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException, InternalServerError

from genre_controller import DELETE_FILTERS, bp as genres_bp
from library_models import Author, Book, Genre, db

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

logger = logging.getLogger(__name__)

csrf = CSRFProtect()


# --- Config ---
def _env_flag(name, default="false"):
    return os.environ.get(name, default).lower() in {"1", "true", "yes"}


def load_config():
    """Settings read from the environment, with development defaults."""
    return {
        'SECRET_KEY': os.environ.get('LIBRARY_SECRET') or "dev-secret-change-me",
        'SQLALCHEMY_DATABASE_URI': os.environ.get('DATABASE_URL') or f"sqlite:///{os.path.join(BASE_DIR, 'library.db')}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': os.environ.get('LOG_LEVEL', 'INFO'),
        'LOG_FILE': os.environ.get('LOG_FILE'),
        'FORCE_HTTPS': _env_flag('FORCE_HTTPS'),
        'GENRE_DELETE_BOOK_FILTER': os.environ.get('GENRE_DELETE_BOOK_FILTER', 'genre'),
        'PARALLEL_FETCH_WORKERS': int(os.environ.get('PARALLEL_FETCH_WORKERS', '2')),
    }


# --- Logging ---
CATALOG_LOGGERS = ('local_library', 'genre_controller')
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s %(method)s %(path)s: %(message)s"


class RequestFilter(logging.Filter):
    """Stamps each record with the method and path of the request being served."""

    def filter(self, record):
        if has_request_context():
            record.method, record.path = request.method, request.path
        else:
            record.method, record.path = "-", "-"
        return True


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Send the catalog's own log records to the console and, optionally, a file.

    Only the catalog loggers are touched. Handlers are attached the first time
    a logger is seen, so building several apps (as the tests do) does not
    duplicate output; later calls only adjust the level.
    """
    catalog_loggers = [logging.getLogger(name) for name in CATALOG_LOGGERS]
    for catalog_logger in catalog_loggers:
        catalog_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    unconfigured = [lg for lg in catalog_loggers if not lg.handlers]
    if not unconfigured:
        return

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers = [logging.StreamHandler()]
    if logfile:
        handlers.append(logging.FileHandler(Path(logfile).resolve(), encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)

    for catalog_logger in unconfigured:
        catalog_logger.addFilter(RequestFilter())
        for handler in handlers:
            catalog_logger.addHandler(handler)


# --- Error pages ---
def register_error_handlers(app):
    @app.errorhandler(HTTPException)
    def http_error(e):
        return render_template('error.html', title=e.name, status=e.code, message=e.description), e.code

    @app.errorhandler(SQLAlchemyError)
    def store_error(e):
        db.session.rollback()
        logger.exception("Database error while handling request")
        err = InternalServerError()
        return render_template('error.html', title=err.name, status=err.code, message=err.description), err.code


# --- CLI helper ---
@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create the tables and add sample data (for dev only)."""
    db.create_all()
    if Genre.query.first():
        click.echo("DB already initialized.")
        return

    fiction = Genre(name="Fiction")
    fantasy = Genre(name="Fantasy")
    poetry = Genre(name="Poetry")
    rothfuss = Author(first_name="Patrick", family_name="Rothfuss")
    asimov = Author(first_name="Isaac", family_name="Asimov")
    db.session.add_all([fiction, fantasy, poetry, rothfuss, asimov])
    db.session.flush()
    db.session.add_all([
        Book(title="The Name of the Wind", author_id=rothfuss.id, genre_id=fantasy.id,
             isbn="9781473211896", summary="The tale of Kvothe, told in his own words."),
        Book(title="The Wise Man's Fear", author_id=rothfuss.id, genre_id=fantasy.id,
             isbn="9788401352836", summary="Day two of the Kingkiller Chronicle."),
        Book(title="Foundation", author_id=asimov.id, genre_id=fiction.id,
             isbn="9780553293357", summary="The fall of the Galactic Empire."),
    ])
    db.session.commit()
    click.echo("Initialized DB with sample data.")


# --- App ---
def create_app(config=None):
    app = Flask(__name__, template_folder="templates")
    app.config.update(load_config())
    if config:
        app.config.update(config)

    if app.config['GENRE_DELETE_BOOK_FILTER'] not in DELETE_FILTERS:
        raise ValueError(f"GENRE_DELETE_BOOK_FILTER must be one of {DELETE_FILTERS}, "
                         f"got {app.config['GENRE_DELETE_BOOK_FILTER']!r}")
    workers = app.config['PARALLEL_FETCH_WORKERS']
    if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
        raise ValueError(f"PARALLEL_FETCH_WORKERS must be a positive integer, got {workers!r}")

    setup_logging(app.config['LOG_LEVEL'], app.config['LOG_FILE'])

    db.init_app(app)
    csrf.init_app(app)
    Talisman(
        app,
        force_https=app.config['FORCE_HTTPS'],
        session_cookie_secure=app.config['FORCE_HTTPS'],
        content_security_policy={
            'default-src': ["'self'"],
            'style-src': ["'self'", "'unsafe-inline'"],
        },
    )

    app.register_blueprint(genres_bp, url_prefix='/catalog')
    register_error_handlers(app)
    app.cli.add_command(init_db_command)

    logger.info("Genre catalog ready (delete filter: %s)", app.config['GENRE_DELETE_BOOK_FILTER'])
    return app
