"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories.
Services are intentionally thin: they perform validation, execute
domain logic (ownership checks, token handling) and persist entities via
repositories. Errors are raised as `quizcraft.errors` exceptions and
mapped to HTTP responses by the application.
"""

from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext
import jwt
import logging
from typing import List, Optional, Sequence
from sqlmodel import Session
from . import models, repositories
from .config import settings
from .errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from .schemas import QuestionIn

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

logger = logging.getLogger("quizcraft.auth")


def require_fields(**values) -> None:
    """Raise `ValidationError` naming every falsy value in `values`."""
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ValidationError(missing)


def validate_questions(questions: Sequence[QuestionIn]) -> None:
    """Every submitted question needs a text and an answer."""
    missing = []
    for i, q in enumerate(questions):
        if not q.question:
            missing.append(f"questions[{i}].question")
        if not q.answer:
            missing.append(f"questions[{i}].answer")
    if missing:
        raise ValidationError(missing)


class AuthService:
    """Authentication related operations (register, login, token checks)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, username: str, password: str) -> models.User:
        """Create a new user with a hashed password.

        Raises `ConflictError` if the username is taken. Returns the
        persisted `User` instance.
        """
        if self.user_repo.exists(username):
            raise ConflictError(f"username already exists: {username}")
        hashed = PWD_CTX.hash(password)
        return self.user_repo.insert(models.User(username=username, password_hash=hashed))

    def authenticate(self, username: str, password: str) -> str:
        """Verify credentials and return a signed JWT token.

        Unknown users and wrong passwords both raise `AuthenticationError`
        with the same message.
        """
        user = self.user_repo.find_by_username(username)
        if not user or not PWD_CTX.verify(password, user.password_hash):
            raise AuthenticationError("invalid credentials")
        return self.issue_token(user)

    @staticmethod
    def issue_token(user: models.User, expires_in: Optional[timedelta] = None) -> str:
        """Sign a token whose only claim is the username."""
        expire = datetime.now(timezone.utc) + (expires_in or timedelta(minutes=settings.JWT_EXPIRE_MINUTES))
        payload = {"username": user.username, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    def resolve_token(self, token: str) -> models.User:
        """Verify `token` and return the user named by its claim."""
        try:
            payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.debug("Rejected expired token")
            raise AuthenticationError("token expired")
        except jwt.InvalidTokenError as e:
            logger.debug("JWT verification failed: %s", e)
            raise AuthenticationError("invalid token")
        username = payload.get("username")
        if not username:
            raise AuthenticationError("invalid token payload")
        try:
            user = self.user_repo.get_by_username(username)
        except NotFoundError:
            logger.debug("Token names unknown user %s", username)
            raise AuthenticationError("user not found")
        logger.debug("JWT verified for %s", user.username)
        return user


def as_utc(value: datetime) -> datetime:
    """Attach UTC to timestamps read back without an offset (SQLite drops it)."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def serialize_question(question: models.Question) -> dict:
    return {
        "id": question.id,
        "question": question.question,
        "answer": question.answer,
        "options": list(question.options or []),
    }


class QuizService:
    """Create, read, update and delete quizzes with their questions.

    Quiz and question writes are separate commits; a failure halfway
    through a create can leave questions without a complete quiz.
    """
    def __init__(self, session: Session):
        self.session = session
        self.quizz_repo = repositories.QuizzRepository(session)
        self.question_repo = repositories.QuestionRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def serialize(self, quizz: models.Quizz) -> dict:
        """Render a quizz with its creator and ordered questions."""
        questions = self._ordered_questions(quizz)
        creator = self.session.get(models.User, quizz.created_by)
        return {
            "id": quizz.id,
            "name": quizz.name,
            "description": quizz.description,
            "created_at": as_utc(quizz.created_at).isoformat(),
            "created_by": {"id": creator.id, "username": creator.username} if creator else None,
            "questions": [serialize_question(q) for q in questions],
        }

    def _ordered_questions(self, quizz: models.Quizz) -> List[models.Question]:
        questions = self.question_repo.get_by_quizz(quizz.id)
        # Questions missing from `question_ids` keep their id order at the end.
        position = {qid: i for i, qid in enumerate(quizz.question_ids or [])}
        return sorted(questions, key=lambda q: (position.get(q.id, len(position)), q.id))

    def list_quizzes(self) -> List[dict]:
        return [self.serialize(q) for q in self.quizz_repo.get_all()]

    def get_quiz(self, quizz_id: int) -> dict:
        return self.serialize(self.quizz_repo.get(quizz_id))

    def create_quiz(self, user: models.User, name: str, description: str, questions: Sequence[QuestionIn]) -> models.Quizz:
        """Insert a quizz and its questions; the creator is `user`.

        The quizz row is written first to obtain an id, then each question
        is inserted with that id and the question order is recorded.
        """
        validate_questions(questions)
        quizz = self.quizz_repo.insert(models.Quizz(name=name, description=description, created_by=user.id))
        ids = []
        for q in questions:
            created = self.question_repo.insert(models.Question(
                quizz_id=quizz.id,
                question=q.question,
                answer=q.answer,
                options=list(q.options),
            ))
            ids.append(created.id)
        quizz.question_ids = ids
        return self.quizz_repo.update(quizz)

    def get_owned(self, user: models.User, quizz_id: int) -> models.Quizz:
        """Load a quizz and check that `user` created it."""
        quizz = self.quizz_repo.get(quizz_id)
        if quizz.created_by != user.id:
            raise AuthorizationError()
        return quizz

    def update_quiz(self, quizz: models.Quizz, name: str, description: str, questions: Sequence[QuestionIn]) -> models.Quizz:
        """Overwrite name, description and the question set of `quizz`.

        Submitted questions carrying the id of one of this quiz's questions
        are updated in place, the others are inserted, and previous
        questions that were not submitted are deleted. The creation
        timestamp and creator are preserved.
        """
        validate_questions(questions)
        existing = {q.id: q for q in self.question_repo.get_by_quizz(quizz.id)}
        ids = []
        for q in questions:
            if q.id is not None and q.id in existing:
                current = existing.pop(q.id)
                current.question = q.question
                current.answer = q.answer
                current.options = list(q.options)
                ids.append(self.question_repo.update(current).id)
            else:
                created = self.question_repo.insert(models.Question(
                    quizz_id=quizz.id,
                    question=q.question,
                    answer=q.answer,
                    options=list(q.options),
                ))
                ids.append(created.id)
        for stale_id in existing:
            self.question_repo.delete(stale_id)
        quizz.name = name
        quizz.description = description
        quizz.question_ids = ids
        return self.quizz_repo.update(quizz)

    def delete_quiz(self, quizz: models.Quizz) -> None:
        """Delete `quizz` and every question attached to it."""
        for q in self.question_repo.get_by_quizz(quizz.id):
            self.question_repo.delete(q.id)
        self.quizz_repo.delete(quizz.id)
