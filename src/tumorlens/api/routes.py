"""API route definitions."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, status
from fastapi.responses import HTMLResponse, JSONResponse

from tumorlens.api.middleware import require_api_key
from tumorlens.api.schemas import ErrorResponse, HealthResponse, SessionView
from tumorlens.pipeline.samples import SampleUnavailableError
from tumorlens.pipeline.validator import ImageUpload, UploadRejectedError

if TYPE_CHECKING:
    from tumorlens.config import Settings
    from tumorlens.pipeline.client import PredictionClient
    from tumorlens.pipeline.session import ClassificationSession

router = APIRouter(prefix="/api/v1", dependencies=[Depends(require_api_key)])
ui_router = APIRouter(tags=["ui"])

HTTP_UNPROCESSABLE = 422

INDEX_HTML = Path(__file__).resolve().parent.parent / "templates" / "index.html"


def _get_session(request: Request) -> ClassificationSession:
    session: ClassificationSession = request.app.state.session
    return session


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_client(request: Request) -> PredictionClient:
    client: PredictionClient = request.app.state.prediction_client
    return client


def _view(session: ClassificationSession) -> SessionView:
    return SessionView.build(session.state, session.drain_notifications())


@router.post(
    "/upload",
    response_model=SessionView,
    status_code=status.HTTP_202_ACCEPTED,
    responses={HTTP_UNPROCESSABLE: {"model": ErrorResponse}},
    summary="Start analysis of an uploaded MRI image",
)
async def upload_image(request: Request, file: UploadFile) -> SessionView | JSONResponse:
    """Validate the file and start a new classification cycle.

    The response reflects the session right after the cycle was started;
    poll ``GET /session`` for the result.
    """
    session = _get_session(request)
    # One byte past the limit is enough for validation to reject it as too large.
    limit = _get_settings(request).max_file_size + 1
    upload = ImageUpload(
        filename=file.filename or "upload",
        content_type=file.content_type,
        data=await file.read(limit),
    )
    try:
        session.select(upload)
    except UploadRejectedError as exc:
        return JSONResponse(
            status_code=HTTP_UNPROCESSABLE,
            content=ErrorResponse(detail=str(exc), reason=exc.reason.value).model_dump(),
        )
    return _view(session)


@router.post(
    "/sample",
    response_model=SessionView,
    status_code=status.HTTP_202_ACCEPTED,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse}},
    summary="Start analysis of the bundled sample image",
)
async def use_sample(request: Request) -> SessionView:
    session = _get_session(request)
    try:
        await session.select_sample()
    except SampleUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return _view(session)


@router.post("/reset", response_model=SessionView, summary="Clear the current image and result")
async def reset(request: Request) -> SessionView:
    session = _get_session(request)
    session.reset()
    return _view(session)


@router.get("/session", response_model=SessionView, summary="Current session state")
async def get_session(request: Request) -> SessionView:
    """Return the session model and drain pending notifications."""
    return _view(_get_session(request))


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    return HealthResponse(
        status="ok",
        endpoint=_get_client(request).endpoint,
        session_status=_get_session(request).state.status.value,
    )


@ui_router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index() -> HTMLResponse:
    if not INDEX_HTML.exists():
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="UI template missing")
    return HTMLResponse(INDEX_HTML.read_text(encoding="utf-8"))
