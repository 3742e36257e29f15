"""Repository classes encapsulating database operations.

Each repository is small and focused on a single entity (users,
questions, quizzes). Repositories return SQLModel objects and commit
after every write. Identities are assigned by the datastore on insert,
so concurrent writers never receive the same id.
"""

from typing import List, Optional
from sqlmodel import Session, select
from . import models
from .errors import NotFoundError


def _get_or_raise(session: Session, model, key, entity: str):
    """Load `model` by primary key or raise `NotFoundError`."""
    try:
        row = session.get(model, key)
    except OverflowError:
        # keys outside the INTEGER range cannot match a row
        row = None
    if row is None:
        raise NotFoundError(entity, key)
    return row


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def insert(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def update(self, user: models.User) -> models.User:
        """Overwrite the row with `user.id`."""
        merged = self.session.merge(user)
        self.session.commit()
        return merged

    def delete(self, user_id: int) -> None:
        """Remove the user with `user_id`; a missing row is a no-op."""
        user = self.session.get(models.User, user_id)
        if user is None:
            return
        self.session.delete(user)
        self.session.commit()

    def get(self, user_id: int) -> models.User:
        """Get a `User` by primary key or raise `NotFoundError`."""
        return _get_or_raise(self.session, models.User, user_id, "user")

    def get_all(self) -> List[models.User]:
        return self.session.exec(select(models.User).order_by(models.User.id)).all()

    def find_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get_by_username(self, username: str) -> models.User:
        """Return a `User` by username or raise `NotFoundError`."""
        user = self.find_by_username(username)
        if user is None:
            raise NotFoundError("user", username)
        return user

    def exists(self, username: str) -> bool:
        stmt = select(models.User.id).where(models.User.username == username)
        return self.session.exec(stmt).first() is not None


class QuestionRepository:
    """CRUD operations for `Question` records."""
    def __init__(self, session: Session):
        self.session = session

    def insert(self, question: models.Question) -> models.Question:
        """Persist a new question and return it with its assigned id."""
        self.session.add(question)
        self.session.commit()
        self.session.refresh(question)
        return question

    def update(self, question: models.Question) -> models.Question:
        """Overwrite the row with `question.id` (no existence check)."""
        merged = self.session.merge(question)
        self.session.commit()
        return merged

    def delete(self, question_id: int) -> None:
        question = self.session.get(models.Question, question_id)
        if question is None:
            return
        self.session.delete(question)
        self.session.commit()

    def get(self, question_id: int) -> models.Question:
        """Fetch a question by id or raise `NotFoundError`."""
        return _get_or_raise(self.session, models.Question, question_id, "question")

    def get_all(self) -> List[models.Question]:
        return self.session.exec(select(models.Question).order_by(models.Question.id)).all()

    def get_by_quizz(self, quizz_id: int) -> List[models.Question]:
        """Return every question attached to `quizz_id`, ordered by id."""
        stmt = select(models.Question).where(models.Question.quizz_id == quizz_id).order_by(models.Question.id)
        return self.session.exec(stmt).all()


class QuizzRepository:
    """CRUD operations for `Quizz` records.

    Questions are stored separately; callers combine this repository with
    `QuestionRepository` to load or write a whole quiz.
    """
    def __init__(self, session: Session):
        self.session = session

    def insert(self, quizz: models.Quizz) -> models.Quizz:
        self.session.add(quizz)
        self.session.commit()
        self.session.refresh(quizz)
        return quizz

    def update(self, quizz: models.Quizz) -> models.Quizz:
        """Overwrite the row with `quizz.id` (no existence check)."""
        merged = self.session.merge(quizz)
        self.session.commit()
        self.session.refresh(merged)
        return merged

    def delete(self, quizz_id: int) -> None:
        """Remove the quizz row; its questions are left to the caller."""
        quizz = self.session.get(models.Quizz, quizz_id)
        if quizz is None:
            return
        self.session.delete(quizz)
        self.session.commit()

    def get(self, quizz_id: int) -> models.Quizz:
        """Fetch a quizz by id or raise `NotFoundError`."""
        return _get_or_raise(self.session, models.Quizz, quizz_id, "quiz")

    def get_all(self) -> List[models.Quizz]:
        """Return every quizz; there is no pagination."""
        return self.session.exec(select(models.Quizz).order_by(models.Quizz.id)).all()
