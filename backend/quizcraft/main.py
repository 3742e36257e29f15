"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the QuizCraft backend.
Controllers are intentionally thin: they accept requests, delegate to
services, log an audit line and return JSON responses. Domain errors
raised below the controllers are turned into JSON error responses by
the exception handlers registered here.

Endpoints implemented:
- POST /api/register
- POST /api/login
- GET /api/quizzes
- POST /api/quizzes
- GET /api/quizzes/{quiz_id}
- PUT /api/quizzes/{quiz_id}
- DELETE /api/quizzes/{quiz_id}
- GET /health
"""

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import OperationalError
from sqlmodel import Session
import logging
import time
import uuid
from . import __version__, services, models
from .auth import get_current_user
from .config import settings
from .database import create_db_and_tables, get_session
from .errors import QuizcraftError, DatastoreUnavailableError
from .schemas import RegisterIn, TokenOut, UserOut, QuizIn, QuizUpdateIn, QuizIdOut

app = FastAPI(title="QuizCraft API", version=__version__)
logger = logging.getLogger("quizcraft.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

# Wide-open CORS keeps a separately served frontend working in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


def _client(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        # Unexpected failures stay server-side; the client gets a bare 500.
        logger.exception("Unhandled error on %s %s (request %s)", request.method, request.url.path, req_id)
        response = JSONResponse(status_code=500, content={"error": "Internal server error"})
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.debug(
        "%s %s -> %s in %sms from %s",
        request.method, request.url.path, response.status_code, elapsed_ms, _client(request),
    )
    return response


@app.exception_handler(QuizcraftError)
async def quizcraft_error_handler(request: Request, exc: QuizcraftError):
    headers = None
    if isinstance(exc, DatastoreUnavailableError) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.debug("%s %s rejected with %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


RETRYABLE_DATASTORE_MESSAGES = ("database is locked", "database table is locked", "busy", "timeout", "timed out")


def is_retryable_datastore_error(exc: OperationalError) -> bool:
    """True for lock and timeout errors; schema or file errors are not retryable."""
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(m in message for m in RETRYABLE_DATASTORE_MESSAGES)


@app.exception_handler(OperationalError)
async def datastore_error_handler(request: Request, exc: OperationalError):
    if is_retryable_datastore_error(exc):
        logger.error("Datastore busy on %s %s: %s", request.method, request.url.path, exc.orig)
        return await quizcraft_error_handler(request, DatastoreUnavailableError())
    logger.exception("Datastore error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "fields": fields})


@app.post('/api/register', status_code=201, response_model=UserOut)
def register(payload: RegisterIn, request: Request, db: Session = Depends(get_session)):
    """Register a new user.

    Duplicate usernames are rejected with 409. Only a salted hash of the
    password is stored.
    """
    services.require_fields(username=payload.username, password=payload.password)
    user = services.AuthService(db).register(payload.username, payload.password)
    logger.info("User %s registered from %s", user.username, _client(request))
    return {'id': user.id, 'username': user.username}


@app.post('/api/login', response_model=TokenOut)
def login(payload: RegisterIn, request: Request, db: Session = Depends(get_session)):
    """Authenticate a user and return a one-hour JWT token.

    The token carries only the username and is signed with the
    configured secret.
    """
    services.require_fields(username=payload.username, password=payload.password)
    try:
        token = services.AuthService(db).authenticate(payload.username, payload.password)
    except QuizcraftError:
        logger.debug("Invalid login attempt for user %s from %s", payload.username, _client(request))
        raise
    logger.info("User %s logged in from %s", payload.username, _client(request))
    return {'token': token}


@app.get('/api/quizzes')
def list_quizzes(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List every quiz with its questions and creator."""
    quizzes = services.QuizService(db).list_quizzes()
    logger.info("Quizzes fetched by %s", user.username)
    return quizzes


@app.post('/api/quizzes', status_code=201, response_model=QuizIdOut)
def create_quiz(payload: QuizIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Create a quiz owned by the authenticated user.

    `name`, `description` and a non-empty `questions` list are required;
    the creation timestamp is assigned by the server.
    """
    services.require_fields(name=payload.name, description=payload.description, questions=payload.questions)
    quiz = services.QuizService(db).create_quiz(user, payload.name, payload.description, payload.questions)
    logger.info("Quiz %s created by %s", quiz.id, user.username)
    return {'id': quiz.id}


@app.get('/api/quizzes/{quiz_id}')
def get_quiz(quiz_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Return a single quiz or 404 if the id does not resolve."""
    quiz = services.QuizService(db).get_quiz(quiz_id)
    logger.info("Quiz %s fetched by %s", quiz_id, user.username)
    return quiz


@app.put('/api/quizzes/{quiz_id}', response_model=QuizIdOut)
def update_quiz(quiz_id: int, payload: QuizUpdateIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Replace a quiz's title, description and questions.

    Only the creator may update a quiz. Questions sent with the `id` of
    an existing question of this quiz are edited in place.
    """
    svc = services.QuizService(db)
    quiz = svc.get_owned(user, quiz_id)
    title = payload.title or payload.name
    services.require_fields(title=title, description=payload.description, questions=payload.questions)
    svc.update_quiz(quiz, title, payload.description, payload.questions)
    logger.info("Quiz %s updated by %s", quiz_id, user.username)
    return {'id': quiz_id}


@app.delete('/api/quizzes/{quiz_id}', response_model=QuizIdOut)
def delete_quiz(quiz_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Delete a quiz and its questions; creator only."""
    svc = services.QuizService(db)
    svc.delete_quiz(svc.get_owned(user, quiz_id))
    logger.info("Quiz %s deleted by %s", quiz_id, user.username)
    return {'id': quiz_id}


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


# Frontend assets; mounted last so the API routes above take precedence.
if settings.STATIC_DIR.exists():
    app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="frontend")
