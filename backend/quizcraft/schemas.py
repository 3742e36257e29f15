"""Pydantic request/response schemas used by the API.

Request fields are optional at the schema level so that handlers can
report every missing field in one 400 response instead of a 422.
"""

from pydantic import BaseModel
from typing import List, Optional


class RegisterIn(BaseModel):
    """Payload for user registration/login endpoints."""
    username: Optional[str] = None
    password: Optional[str] = None


class UserOut(BaseModel):
    id: int
    username: str


class TokenOut(BaseModel):
    """Authentication response containing a signed token."""
    token: str


class QuestionIn(BaseModel):
    """A question as submitted inside a quiz payload.

    `id` is only meaningful on update, where it refers to an existing
    question of the same quiz.
    """
    id: Optional[int] = None
    question: Optional[str] = None
    answer: Optional[str] = None
    options: List[str] = []


class QuizIn(BaseModel):
    """Request body for quiz creation."""
    name: Optional[str] = None
    description: Optional[str] = None
    questions: Optional[List[QuestionIn]] = None


class QuizUpdateIn(BaseModel):
    """Request body for quiz updates.

    Clients send `title`; `name` is accepted as an alias so the create
    payload can be reused.
    """
    title: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    questions: Optional[List[QuestionIn]] = None


class QuizIdOut(BaseModel):
    id: int
