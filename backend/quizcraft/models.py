"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Primary keys are datastore-assigned integers and stay `None` until the
row is persisted. Ordered lists (question options, the question order of
a quizz) are stored as JSON array columns.
"""

from typing import List, Optional
from datetime import datetime, timezone

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    created_at: datetime = Field(default_factory=_utcnow)


class Question(SQLModel, table=True):
    """A multiple-choice question owned by exactly one `Quizz`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    quizz_id: Optional[int] = Field(default=None, foreign_key="quizz.id", index=True)
    question: str
    answer: str
    options: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))


class Quizz(SQLModel, table=True):
    """A quiz created by a user.

    `question_ids` keeps the order in which the questions were submitted;
    the questions themselves point back through `Question.quizz_id`.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: str
    created_at: datetime = Field(default_factory=_utcnow)
    created_by: int = Field(foreign_key="user.id", index=True)
    question_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
