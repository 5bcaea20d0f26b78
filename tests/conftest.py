# tests/conftest.py
import pytest

from library_models import Author, Book, Genre, db
from local_library import create_app


@pytest.fixture
def make_app(tmp_path):
    """Build an app against a throwaway sqlite file with the tables created."""
    apps = []

    def _make(**overrides):
        config = {
            'TESTING': True,
            'WTF_CSRF_ENABLED': False,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / f'library_{len(apps)}.db'}",
        }
        config.update(overrides)
        app = create_app(config)
        with app.app_context():
            db.create_all()
        apps.append(app)
        return app

    yield _make

    for app in apps:
        with app.app_context():
            db.drop_all()
            db.engine.dispose()


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_genre(app):
    def _make(name):
        with app.app_context():
            genre = Genre(name=name)
            db.session.add(genre)
            db.session.commit()
            return genre.id
    return _make


@pytest.fixture
def make_author(app):
    def _make(first_name="Ursula", family_name="Le Guin"):
        with app.app_context():
            author = Author(first_name=first_name, family_name=family_name)
            db.session.add(author)
            db.session.commit()
            return author.id
    return _make


@pytest.fixture
def make_book(app, make_author):
    def _make(title, genre_id, author_id=None):
        if author_id is None:
            author_id = make_author()
        with app.app_context():
            book = Book(title=title, genre_id=genre_id, author_id=author_id, summary=f"About {title}")
            db.session.add(book)
            db.session.commit()
            return book.id
    return _make


@pytest.fixture
def genre_names(app):
    """Current genre names keyed by id."""
    def _names():
        with app.app_context():
            return {g.id: g.name for g in Genre.query.all()}
    return _names
