"""
ORM models for the local library catalog.

Genres are the only records written from this application; authors and books
are read to decide whether a genre can be removed and to list its books.
"""
from flask import url_for
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


# --- Models ---
class Genre(db.Model):
    __tablename__ = 'genres'
    id = db.Column(db.Integer, primary_key=True)
    # Stored escaped; uniqueness is checked by the create view, not the schema
    name = db.Column(db.Text, nullable=False, index=True)

    # Read-only: the delete view guards referenced genres, not the ORM
    books = db.relationship('Book', viewonly=True)

    @property
    def url(self):
        return url_for('genres.genre_detail', genre_id=self.id)

    def __repr__(self):
        return f'<Genre {self.id} {self.name!r}>'


class Author(db.Model):
    __tablename__ = 'authors'
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    family_name = db.Column(db.String(100), nullable=False)

    books = db.relationship('Book', back_populates='author')

    @property
    def name(self):
        return f'{self.family_name}, {self.first_name}'


class Book(db.Model):
    __tablename__ = 'books'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(250), nullable=False, index=True)
    summary = db.Column(db.Text)
    isbn = db.Column(db.String(20))
    author_id = db.Column(db.Integer, db.ForeignKey('authors.id'), nullable=False)
    genre_id = db.Column(db.Integer, db.ForeignKey('genres.id'), nullable=True, index=True)

    author = db.relationship('Author', back_populates='books')
    genre = db.relationship('Genre')

    @property
    def url(self):
        # Books are served by another part of the catalog
        return f'/catalog/book/{self.id}'
