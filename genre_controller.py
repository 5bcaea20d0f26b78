"""
Genre pages of the local library catalog.

Every view reads or writes genres through the ORM session and either renders
a template or redirects. Validation failures re-render the form; a missing
genre raises ``GenreNotFound``; database errors propagate to the app-level
error handlers.
"""
import logging
from concurrent.futures import ThreadPoolExecutor

from flask import Blueprint, current_app, redirect, render_template, request, url_for
from sqlalchemy import delete, update
from werkzeug.exceptions import NotFound

from genre_forms import GenreForm, clean_genre, form_for_genre
from library_models import Book, Genre, db

logger = logging.getLogger(__name__)

bp = Blueprint('genres', __name__)

DELETE_FILTERS = ('genre', 'author')


class GenreNotFound(NotFound):
    description = "Genre not found"


# --- Helpers ---
def fetch_parallel(**loaders):
    """Run independent loaders concurrently and return their results by name.

    Each loader runs in its own application context (and so its own session).
    Loaded instances are merged into the request session so templates can
    follow relationships. The first loader failure is re-raised here.
    """
    app = current_app._get_current_object()

    def run(loader):
        with app.app_context():
            return loader()

    workers = app.config.get('PARALLEL_FETCH_WORKERS', 2)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {name: executor.submit(run, loader) for name, loader in loaders.items()}
        results = {name: future.result() for name, future in futures.items()}

    return {name: _attach(value) for name, value in results.items()}


def _attach(value):
    if isinstance(value, list):
        return [_attach(item) for item in value]
    if isinstance(value, db.Model):
        return db.session.merge(value, load=False)
    return value


def load_genre(genre_id):
    return lambda: db.session.get(Genre, genre_id)


def load_books(**criteria):
    return lambda: Book.query.filter_by(**criteria).order_by(Book.title).all()


def books_blocking_delete(genre_id, author_id):
    if current_app.config['GENRE_DELETE_BOOK_FILTER'] == 'author':
        # Legacy behaviour: books are matched on the submitted author
        return load_books(author_id=author_id)
    return load_books(genre_id=genre_id)


def render_genre_form(title, form, genre=None, errors=None):
    return render_template('genre_form.html', title=title, form=form, genre=genre, errors=errors or [])


# --- Views ---
@bp.route('/genres')
def genre_list():
    genres = Genre.query.order_by(Genre.name.asc()).all()
    return render_template('genre_list.html', title='Genre List', genre_list=genres)


@bp.route('/genre/<int:genre_id>')
def genre_detail(genre_id):
    results = fetch_parallel(genre=load_genre(genre_id), genre_books=load_books(genre_id=genre_id))
    if results['genre'] is None:
        raise GenreNotFound()
    return render_template('genre_detail.html', title='Genre Detail',
                           genre=results['genre'], genre_books=results['genre_books'])


@bp.route('/genre/create', methods=['GET'])
def genre_create_get():
    return render_genre_form('Create Genre', GenreForm())


@bp.route('/genre/create', methods=['POST'])
def genre_create_post():
    form = GenreForm()
    data, errors = clean_genre(form)
    if errors:
        return render_genre_form('Create Genre', form, errors=errors)

    # Check-then-insert is not atomic; two concurrent creates may both succeed
    found = Genre.query.filter_by(name=data.name).first()
    if found is not None:
        return redirect(found.url)

    genre = Genre(name=data.name)
    db.session.add(genre)
    db.session.commit()
    logger.info("Created genre %s (%r)", genre.id, genre.name)
    return redirect(genre.url)


@bp.route('/genre/<int:genre_id>/delete', methods=['GET'])
def genre_delete_get(genre_id):
    results = fetch_parallel(genre=load_genre(genre_id), genre_books=load_books(genre_id=genre_id))
    if results['genre'] is None:
        return redirect(url_for('genres.genre_list'))
    return render_template('genre_delete.html', title='Delete Genre',
                           genre=results['genre'], genre_books=results['genre_books'])


@bp.route('/genre/<int:genre_id>/delete', methods=['POST'])
def genre_delete_post(genre_id):
    target_id = request.form.get('genreid', type=int)
    if target_id is None:
        target_id = genre_id
    author_id = request.form.get('authorid', type=int)

    results = fetch_parallel(genre=load_genre(target_id),
                             genre_books=books_blocking_delete(target_id, author_id))
    genre, books = results['genre'], results['genre_books']
    if genre is None:
        return redirect(url_for('genres.genre_list'))
    if books:
        logger.info("Refused to delete genre %s: %d book(s) attached", target_id, len(books))
        return render_template('genre_delete.html', title='Delete Genre', genre=genre, genre_books=books)

    db.session.execute(delete(Genre).where(Genre.id == target_id))
    db.session.commit()
    logger.info("Deleted genre %s", target_id)
    return redirect(url_for('genres.genre_list'))


@bp.route('/genre/<int:genre_id>/update', methods=['GET'])
def genre_update_get(genre_id):
    genre = db.session.get(Genre, genre_id)
    if genre is None:
        raise GenreNotFound()
    return render_genre_form('Update Genre', form_for_genre(genre), genre)


@bp.route('/genre/<int:genre_id>/update', methods=['POST'])
def genre_update_post(genre_id):
    form = GenreForm()
    data, errors = clean_genre(form)
    if errors:
        # Keep the id so the re-submitted form targets the same record
        genre = Genre(id=genre_id, name=data.name)
        return render_genre_form('Update Genre', form, genre, errors)

    result = db.session.execute(update(Genre).where(Genre.id == genre_id).values(name=data.name))
    if result.rowcount == 0:
        db.session.rollback()
        raise GenreNotFound()
    db.session.commit()
    logger.info("Updated genre %s to %r", genre_id, data.name)
    return redirect(url_for('genres.genre_detail', genre_id=genre_id))
