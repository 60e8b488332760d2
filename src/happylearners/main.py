import json
import logging
import os
import uuid
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn
from redis import Redis
from fastapi import (
    Cookie,
    Depends,
    FastAPI,
    Form,
    Request,
    Response,
)
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .config import settings
from .content import ContentStore
from .errors import (
    EmptyPool,
    InvalidResponse,
    NoActiveLearner,
    PersistenceFailure,
    ProfileNotFound,
    QuizError,
    SessionClosed,
    SessionNotFinished,
    SubjectNotFound,
)
from .ledger import ProgressLedger, attempt_history, summarize_attempts
from .models import (
    AnswerSubmission,
    ItemPlacement,
    ItemSelection,
    LessonCompletion,
    LessonScope,
    NewProfile,
    SubjectDocument,
    SubjectScope,
)
from .pool import build_pool
from .profiles import ProfileStore
from .redis_session import ActiveQuiz, delete_quiz, get_redis, load_quiz, save_quiz
from .scoring import completion_percent
from .session import QuizSession, SessionStatus

logger = logging.getLogger(__name__)


# --- Logging Setup ---
def configure_logging():
    package_logger = logging.getLogger("happylearners")
    package_logger.setLevel(settings.LOG_LEVEL)
    if any(isinstance(h, RotatingFileHandler) for h in package_logger.handlers):
        return

    if not os.path.exists(settings.LOG_DIR):
        os.makedirs(settings.LOG_DIR)
    log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    )
    package_logger.addHandler(file_handler)


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    content_store.load_all()
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

content_store = ContentStore(settings.CONTENT_DIR)

ERROR_STATUS = {
    EmptyPool: 404,
    SubjectNotFound: 404,
    ProfileNotFound: 404,
    NoActiveLearner: 409,
    SessionClosed: 409,
    SessionNotFinished: 409,
    InvalidResponse: 400,
    PersistenceFailure: 503,
}


def _status_for(exc: QuizError) -> int:
    return next(
        (code for error, code in ERROR_STATUS.items() if isinstance(exc, error)), 400
    )


@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError):
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.url.path}: {exc}")
    return JSONResponse({"error": str(exc)}, status_code=status_code)


# --- Dependencies ---
def get_content_store() -> ContentStore:
    return content_store


def get_ledger(client: Redis = Depends(get_redis)) -> ProgressLedger:
    return ProgressLedger(client)


def get_profiles(client: Redis = Depends(get_redis)) -> ProfileStore:
    return ProfileStore(client)


def get_session_id(
    session_id: Optional[str] = Cookie(None, alias=settings.SESSION_COOKIE_NAME),
) -> Optional[str]:
    return session_id


def get_active_quiz(
    session_id: Optional[str] = Depends(get_session_id),
    client: Redis = Depends(get_redis),
) -> Optional[ActiveQuiz]:
    return load_quiz(client, session_id)


def _require_subject(store: ContentStore, path: str) -> SubjectDocument:
    subject = store.get_subject(path)
    if subject is None:
        raise SubjectNotFound(path)
    return subject


def _settle(
    client: Redis,
    session_id: str,
    quiz: ActiveQuiz,
    ledger: ProgressLedger,
    **reply,
):
    """Persist the quiz state and finalize it once every question is scored.

    ``reply`` carries what the calling route reports about the input it just
    applied. It is returned even when finalizing fails, because that input has
    already been scored and saved.
    """
    session = quiz.session
    view = session.render()
    save_quiz(client, session_id, quiz)
    if view is not None:
        return {**reply, "finished": False, "question": view, "result": None}

    try:
        result = session.finalize(ledger, quiz.learner_id, quiz.grade, quiz.subject_id)
    except QuizError as e:
        status_code = _status_for(e)
        if status_code >= 500:
            logger.error(f"Session {session_id} could not be finalized: {e}")
        body = {**reply, "error": str(e), "finished": False, "question": None, "result": None}
        return JSONResponse(jsonable_encoder(body), status_code=status_code)

    delete_quiz(client, session_id)
    return {**reply, "finished": True, "question": None, "result": result}


# --- Content Routes ---
@app.get("/api/grades")
async def get_grades(store: ContentStore = Depends(get_content_store)):
    return store.get_grades()


@app.get("/api/subjects")
async def get_subjects(
    grade: Optional[int] = None, store: ContentStore = Depends(get_content_store)
):
    return store.get_subjects(grade)


@app.get("/api/subject")
async def get_subject(path: str, store: ContentStore = Depends(get_content_store)):
    return _require_subject(store, path)


# --- Profile Routes ---
@app.get("/api/profiles")
def list_profiles(profiles: ProfileStore = Depends(get_profiles)):
    return {"profiles": profiles.list_profiles(), "active": profiles.get_active_id()}


@app.post("/api/profiles", status_code=201)
def create_profile(body: NewProfile, profiles: ProfileStore = Depends(get_profiles)):
    return profiles.create_profile(body.name)


@app.post("/api/profiles/{profile_id}/activate")
def activate_profile(profile_id: str, profiles: ProfileStore = Depends(get_profiles)):
    profiles.set_active(profile_id)
    return {"status": "success", "active": profile_id}


@app.delete("/api/profiles/{profile_id}")
def delete_profile(
    profile_id: str,
    profiles: ProfileStore = Depends(get_profiles),
    ledger: ProgressLedger = Depends(get_ledger),
):
    cleared = profiles.delete_profile(profile_id, ledger)
    return {"status": "success", "cleared": cleared}


# --- Progress Routes ---
@app.post("/api/lessons/complete")
def complete_lesson(
    body: LessonCompletion,
    store: ContentStore = Depends(get_content_store),
    profiles: ProfileStore = Depends(get_profiles),
    ledger: ProgressLedger = Depends(get_ledger),
):
    subject = _require_subject(store, body.path)
    if not any(lesson.id == body.lesson_id for lesson in subject.lessons):
        raise InvalidResponse(f"Lesson {body.lesson_id} is not part of {body.path}")

    learner_id = profiles.get_active_id()
    meta = subject.meta
    changed = ledger.mark_lesson_complete(learner_id, meta.grade, meta.subject_id, body.lesson_id)
    return {
        "changed": changed,
        "completion_percent": ledger.subject_completion(
            learner_id, meta.grade, meta.subject_id, len(subject.lessons)
        ),
    }


@app.get("/api/progress")
def get_progress(
    path: str,
    store: ContentStore = Depends(get_content_store),
    profiles: ProfileStore = Depends(get_profiles),
    ledger: ProgressLedger = Depends(get_ledger),
):
    subject = _require_subject(store, path)
    learner_id = profiles.get_active_id()
    if not learner_id:
        raise NoActiveLearner()

    record = ledger.read_record(learner_id, subject.meta.grade, subject.meta.subject_id)
    history = attempt_history(record)
    return {
        "label": subject.meta.label,
        "completed_lessons": record.completed_lessons,
        "lesson_count": len(subject.lessons),
        "completion_percent": completion_percent(
            len(record.completed_lessons), len(subject.lessons)
        ),
        "summary": summarize_attempts(record),
        "attempts": json.loads(history.to_json(orient="records", date_format="iso")),
    }


# --- Quiz Routes ---
@app.post("/start", status_code=201)
def start_quiz_session(
    response: Response,
    path: str = Form(...),
    scope: str = Form("subject"),
    lesson_index: int = Form(0),
    timer: bool = Form(False),
    store: ContentStore = Depends(get_content_store),
    profiles: ProfileStore = Depends(get_profiles),
    session_id: Optional[str] = Depends(get_session_id),
    previous: Optional[ActiveQuiz] = Depends(get_active_quiz),
    client: Redis = Depends(get_redis),
):
    subject = _require_subject(store, path)
    if scope == "lesson":
        quiz_scope = LessonScope(lesson_index=lesson_index)
        mode = "lesson"
    else:
        quiz_scope = SubjectScope()
        mode = "subject"

    pool = build_pool(subject, quiz_scope)
    # The attempt is recorded for the learner who started the quiz.
    learner_id = profiles.get_active_id()
    if not learner_id:
        raise NoActiveLearner()

    session = QuizSession.start(pool, mode=mode, timer_enabled=timer)

    # Starting over drops the unfinished quiz without recording it.
    if previous is not None:
        previous.session.abandon()
        delete_quiz(client, session_id)

    new_id = str(uuid.uuid4())
    quiz = ActiveQuiz(
        path=path,
        grade=subject.meta.grade,
        subject_id=subject.meta.subject_id,
        learner_id=learner_id,
        session=session,
    )
    save_quiz(client, new_id, quiz)

    logger.info(
        f"New session: {new_id} [Learner: {learner_id}, Subject: {path}, "
        f"Mode: {mode}, Timer: {timer}]"
    )

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=new_id,
        httponly=True,
        samesite="Lax",
    )
    return {"total": session.total, "question": session.render()}


@app.get("/api/quiz/current")
def get_current_question(
    session_id: Optional[str] = Depends(get_session_id),
    quiz: Optional[ActiveQuiz] = Depends(get_active_quiz),
    client: Redis = Depends(get_redis),
    ledger: ProgressLedger = Depends(get_ledger),
):
    if not quiz:
        return JSONResponse({"error": "Session invalid"}, status_code=401)
    return _settle(client, session_id, quiz, ledger)


@app.post("/api/quiz/answer")
def submit_answer(
    body: AnswerSubmission,
    session_id: Optional[str] = Depends(get_session_id),
    quiz: Optional[ActiveQuiz] = Depends(get_active_quiz),
    client: Redis = Depends(get_redis),
    ledger: ProgressLedger = Depends(get_ledger),
):
    if not quiz:
        return JSONResponse({"error": "Session invalid"}, status_code=401)

    record = quiz.session.answer(body.index, body.response)
    if record is None:
        save_quiz(client, session_id, quiz)
        return JSONResponse({"error": "Already answered"}, status_code=400)

    logger.info(
        f"Session {session_id} Q{body.index}: {record.kind} -> "
        f"{'CORRECT' if record.correct else 'INCORRECT'}"
    )
    return _settle(client, session_id, quiz, ledger, record=record)


@app.post("/api/quiz/select")
def select_item(
    body: ItemSelection,
    session_id: Optional[str] = Depends(get_session_id),
    quiz: Optional[ActiveQuiz] = Depends(get_active_quiz),
    client: Redis = Depends(get_redis),
    ledger: ProgressLedger = Depends(get_ledger),
):
    if not quiz:
        return JSONResponse({"error": "Session invalid"}, status_code=401)

    selected = quiz.session.select_item(body.index, body.item)
    return _settle(client, session_id, quiz, ledger, selected=selected)


@app.post("/api/quiz/place")
def place_item(
    body: ItemPlacement,
    session_id: Optional[str] = Depends(get_session_id),
    quiz: Optional[ActiveQuiz] = Depends(get_active_quiz),
    client: Redis = Depends(get_redis),
    ledger: ProgressLedger = Depends(get_ledger),
):
    if not quiz:
        return JSONResponse({"error": "Session invalid"}, status_code=401)

    record = quiz.session.place_item(body.index, body.target, body.value)
    # Scoring moves on to the next question, so report the completed board.
    placements = dict(quiz.session.placements) if record is None else record.response
    return _settle(client, session_id, quiz, ledger, placements=placements, record=record)


@app.post("/api/quiz/finalize")
def finalize_quiz(
    session_id: Optional[str] = Depends(get_session_id),
    quiz: Optional[ActiveQuiz] = Depends(get_active_quiz),
    client: Redis = Depends(get_redis),
    ledger: ProgressLedger = Depends(get_ledger),
):
    if not quiz:
        return JSONResponse({"error": "Session invalid"}, status_code=401)
    if quiz.session.status is not SessionStatus.FINALIZING:
        raise SessionNotFinished(quiz.session.total - quiz.session.index)
    return _settle(client, session_id, quiz, ledger)


@app.post("/api/reset")
def reset_session(
    response: Response,
    session_id: Optional[str] = Depends(get_session_id),
    quiz: Optional[ActiveQuiz] = Depends(get_active_quiz),
    client: Redis = Depends(get_redis),
):
    if quiz:
        quiz.session.abandon()
        delete_quiz(client, session_id)
        logger.info(f"Reset session: {session_id}")
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"status": "success"}


if __name__ == "__main__":
    uvicorn.run("happylearners.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
