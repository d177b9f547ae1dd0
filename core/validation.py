"""
core/validation.py -- Structural input checks that run before any store call.

Pure functions: no I/O, no store access. Each validator either returns a
normalised frozen dataclass or raises ValidationFailed naming the first
offending field.

Registration checks password, then username, then email. The order is part
of the observable contract: a request that breaks several rules reports the
password rule.
"""

import re
from dataclasses import dataclass
from typing import Optional

from core.errors import ValidationFailed
from core.models import EMAIL_PATTERN, PASSWORD_MAX_BYTES, PASSWORD_MIN_LENGTH, USERNAME_MIN_LENGTH

_EMAIL_RE = re.compile(EMAIL_PATTERN)


@dataclass(frozen=True)
class RegistrationInput:
    username: str
    email: str
    password: str


@dataclass(frozen=True)
class BlogInput:
    title: str
    description: str
    body: str
    tags: tuple[str, ...]
    user_id: int


def validate_password(password: str, field: str = "password") -> str:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationFailed(field, f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValidationFailed(field, f"Password must be at most {PASSWORD_MAX_BYTES} bytes long")
    return password


def validate_username(username: str) -> str:
    if len(username) < USERNAME_MIN_LENGTH:
        raise ValidationFailed("username", f"Username must be at least {USERNAME_MIN_LENGTH} characters long")
    return username


def validate_email(email: str) -> str:
    if not _EMAIL_RE.match(email):
        raise ValidationFailed("email", "Invalid Email")
    return email


def validate_registration(username: str, email: str, password: str) -> RegistrationInput:
    validate_password(password)
    validate_username(username)
    validate_email(email)
    return RegistrationInput(username=username, email=email, password=password)


def validate_blog(
    title: str,
    description: str,
    body: str,
    tags: Optional[list[str]],
    user_id: int,
    require_content: bool = False,
) -> BlogInput:
    """Shape blog input. Tags are kept exactly as given, in order.

    require_content=True additionally refuses a blank title or body.
    """
    if require_content:
        if not title.strip():
            raise ValidationFailed("title", "Title is required")
        if not body.strip():
            raise ValidationFailed("body", "Body is required")
    return BlogInput(
        title=title,
        description=description,
        body=body,
        tags=tuple(tags or ()),
        user_id=user_id,
    )


def validate_comment_body(comment: str, require_content: bool = False) -> str:
    if require_content and not comment.strip():
        raise ValidationFailed("comment", "Comment cannot be empty")
    return comment


def validate_image_ref(image: str) -> str:
    image = image.strip()
    if not image:
        raise ValidationFailed("image", "Image reference is required")
    return image
