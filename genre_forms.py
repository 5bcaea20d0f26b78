import html
from dataclasses import dataclass
from typing import List, Tuple

import bleach
from flask_wtf import FlaskForm
from wtforms import StringField, SubmitField
from wtforms.validators import DataRequired, Length

GENRE_NAME_REQUIRED = "Genre name required"
GENRE_NAME_MAX = 100


def strip_whitespace(value):
    return value.strip() if isinstance(value, str) else value


def sanitize_name(value):
    # No markup is allowed in a genre name, so every tag is escaped
    return bleach.clean(value or "", tags=set(), strip=False)


class GenreForm(FlaskForm):
    name = StringField(
        'Genre',
        filters=[strip_whitespace],
        validators=[
            DataRequired(message=GENRE_NAME_REQUIRED),
            Length(max=GENRE_NAME_MAX, message=f"Genre name must be {GENRE_NAME_MAX} characters or fewer"),
        ],
    )
    submit = SubmitField('Submit')


def form_for_genre(genre):
    """Edit form pre-filled with the stored name as the user originally typed it."""
    return GenreForm(name=html.unescape(genre.name))


@dataclass
class GenreInput:
    name: str


def clean_genre(form: GenreForm) -> Tuple[GenreInput, List[str]]:
    """Validate and sanitize a submitted genre form.

    Returns the trimmed, escaped input together with the validation messages
    in field order. The message list is empty when the input is usable.
    """
    errors = []
    if not form.validate():
        for messages in form.errors.values():
            errors.extend(messages)
    return GenreInput(name=sanitize_name(form.name.data)), errors
