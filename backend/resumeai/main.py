import os
import time
import uuid
import asyncio
from typing import Optional

from fastapi import FastAPI, UploadFile, File, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from resumeai.ai import AnalysisClient
from resumeai.core import (
    GEMINI_MODEL,
    SESSION_TTL_SECONDS,
    SessionCreated,
    SessionStatus,
    SkillResponse,
    StateError,
    ValidationError,
)
from resumeai.logger import ContextLogger, setup_logger
from resumeai.models import Session
from resumeai.services.flow import FlowController, Step
from resumeai.services.intake import read_upload
from resumeai.services.report import render_html_report
from resumeai.services.report_pdf import build_pdf

ENV = os.getenv("ENV", "dev").lower()
IS_PROD = ENV in {"prod", "production"}
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

setup_logger()
log = ContextLogger("api")

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["5/day"] if IS_PROD else [],
)

rate_limit = limiter.limit("5/day") if IS_PROD else (lambda fn: fn)

app = FastAPI(title="ResumeAI Resume Analyzer", version="0.1.0")
app.state.limiter = limiter
app.state.analysis_client = AnalysisClient()
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

sessions: dict[str, Session] = {}

# strong refs so running analyses are not garbage collected
_tasks: set[asyncio.Task] = set()


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"status": False, "message": "Rate limit exceeded: 5 free uses/day per IP."},
    )


@app.exception_handler(ValidationError)
def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"status": False, "message": str(exc)})


@app.exception_handler(StateError)
def state_error_handler(request: Request, exc: StateError):
    return JSONResponse(status_code=409, content={"status": False, "message": str(exc)})


def _spawn(coro) -> None:
    task = asyncio.create_task(coro)
    _tasks.add(task)
    task.add_done_callback(_tasks.discard)


def evict_expired_sessions(now: Optional[float] = None) -> int:
    """Drop sessions older than SESSION_TTL_SECONDS. Returns how many were dropped."""
    cutoff = (now if now is not None else time.time()) - SESSION_TTL_SECONDS
    expired = [sid for sid, s in sessions.items() if s.created_at < cutoff]
    for sid in expired:
        del sessions[sid]
    if expired:
        log.info(f"Evicted {len(expired)} expired session(s)")
    return len(expired)


def get_session(session_id: str) -> Session:
    session = sessions.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def session_status(session: Session) -> SessionStatus:
    controller = session.controller
    state = controller.state
    return SessionStatus(
        status=True,
        session_id=session.session_id,
        step=state.step.value,
        filename=state.resume.name if state.resume else None,
        media_type=state.resume.media_type if state.resume else None,
        job_description=state.job_description,
        error=state.error,
        alert=controller.report.alert,
        busy=controller.report.busy,
        can_analyze=state.can_analyze,
        result=state.result.model_dump(by_alias=True) if state.result else None,
    )


def _displayed_result(session: Session):
    state = session.controller.state
    if state.step != Step.RESULTS or state.result is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return state


@app.get("/", tags=["default"])
def root():
    return {"status": "ok", "service": "ResumeAI Resume Analyzer", "docs": "/docs"}


@app.get("/health", tags=["default"])
def health():
    return {"ok": True, "env": ENV, "model": GEMINI_MODEL, "rate_limit_enabled": IS_PROD}


@app.post("/api/sessions", response_model=SessionCreated, tags=["session"])
def create_session():
    evict_expired_sessions()
    session_id = str(uuid.uuid4())
    sessions[session_id] = Session(
        session_id=session_id,
        controller=FlowController(app.state.analysis_client),
    )
    log.info(f"Session {session_id} created")
    return SessionCreated(status=True, session_id=session_id)


@app.get("/api/sessions/{session_id}", response_model=SessionStatus, tags=["session"])
def status(session_id: str):
    return session_status(get_session(session_id))


@app.post("/api/sessions/{session_id}/resume", response_model=SessionStatus, tags=["session"])
async def upload_resume(session_id: str, resume: UploadFile = File(...)):
    session = get_session(session_id)
    controller = session.controller
    if controller.state.step != Step.UPLOAD:
        raise StateError("A resume can only be selected before analysis")

    try:
        uploaded = await read_upload(resume)
    except ValidationError as e:
        controller.reject_file(e)
        raise
    controller.accept_file(uploaded)
    return session_status(session)


@app.delete("/api/sessions/{session_id}/resume", response_model=SessionStatus, tags=["session"])
def remove_resume(session_id: str):
    session = get_session(session_id)
    session.controller.clear_file()
    return session_status(session)


@app.put("/api/sessions/{session_id}/job-description", response_model=SessionStatus, tags=["session"])
def set_job_description(session_id: str, job_description: Optional[str] = Form("")):
    session = get_session(session_id)
    session.controller.set_job_description(job_description or "")
    return session_status(session)


@app.post("/api/sessions/{session_id}/analyze", response_model=SessionStatus, status_code=202, tags=["session"])
@rate_limit
async def analyze(request: Request, session_id: str):
    session = get_session(session_id)
    controller = session.controller
    controller.submit()

    _spawn(controller.run_analysis())
    return session_status(session)


@app.post("/api/sessions/{session_id}/skills", response_model=SkillResponse, tags=["session"])
@rate_limit
async def add_skill(request: Request, session_id: str, skill: str = Form(...)):
    session = get_session(session_id)
    controller = session.controller
    if controller.state.step != Step.RESULTS:
        raise StateError("No analysis result to update")

    skill = skill.strip()
    if not skill:
        raise ValidationError("Skill must not be blank.")

    dispatched = controller.report.begin()
    if dispatched:
        _spawn(controller.report.resolve(skill))
    else:
        log.debug(f"Session {session_id} busy; '{skill}' not dispatched")
    return SkillResponse(status=True, session_id=session_id, skill=skill, dispatched=dispatched)


@app.post("/api/sessions/{session_id}/reset", response_model=SessionStatus, tags=["session"])
def reset(session_id: str):
    session = get_session(session_id)
    session.controller.reset()
    return session_status(session)


@app.get("/api/sessions/{session_id}/report", response_class=HTMLResponse, tags=["report"])
def report(session_id: str):
    session = get_session(session_id)
    state = _displayed_result(session)
    return HTMLResponse(render_html_report(state.result, state.resume.name if state.resume else None))


@app.get("/api/sessions/{session_id}/download", tags=["report"])
def download(session_id: str):
    session = get_session(session_id)
    state = _displayed_result(session)

    pdf_bytes = build_pdf(state.result, state.resume.name if state.resume else None)

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="Resume_Report_{session_id}.pdf"'},
    )
