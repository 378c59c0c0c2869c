"""
Event admission endpoints.

POST /events/github
POST /events/dockerhub/{org}/{repo}/{commit}

A 200 means the event was admitted and its build was scheduled. Handler
outcomes never change the response; the build runs as a background task.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request

from .admission import admit_dockerhub, admit_github
from .builds import run_build_detached
from .errors import MalformedRequestError, SignatureError, UnknownProjectError
from .models import AdmissionResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])
health_router = APIRouter(tags=["health"])


@health_router.get("/healthz", response_model=HealthResponse)
async def healthz():
    """Liveness probe."""
    return HealthResponse(status="ok")


def _schedule(request: Request, background_tasks: BackgroundTasks, project, event) -> AdmissionResponse:
    background_tasks.add_task(run_build_detached, request.app.state, project, event)
    logger.info(
        f"[GATEWAY] Admitted '{event.type}' event {event.id} from {event.provider} "
        f"for '{project.name}'"
    )
    return AdmissionResponse(
        status="accepted",
        event_id=event.id,
        build_id=event.build_id,
        type=event.type,
        project_id=project.id,
    )


@router.post("/github", response_model=AdmissionResponse)
async def github_event(request: Request, background_tasks: BackgroundTasks):
    """
    Admit a signed GitHub webhook.

    Returns:
        400 for a missing event header or unreadable payload, 404 for an
        unknown repository, 403 for a missing or invalid signature
    """
    body = await request.body()
    try:
        project, event = admit_github(body, request.headers, request.app.state.projects)
    except MalformedRequestError as e:
        logger.warning(f"[GATEWAY] Rejected GitHub delivery: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except UnknownProjectError as e:
        logger.warning(f"[GATEWAY] Rejected GitHub delivery: {e}")
        raise HTTPException(status_code=404, detail=str(e))
    except SignatureError as e:
        logger.warning(f"[GATEWAY] Rejected GitHub delivery: {e}")
        raise HTTPException(status_code=403, detail="Signature verification failed")

    if event is None:
        return AdmissionResponse(status="pong", project_id=project.id)
    return _schedule(request, background_tasks, project, event)


@router.post("/dockerhub/{org}/{repo}/{commit}", response_model=AdmissionResponse)
async def dockerhub_event(
    org: str,
    repo: str,
    commit: str,
    request: Request,
    background_tasks: BackgroundTasks,
):
    """
    Admit a Docker Hub push notification for project "{org}/{repo}".

    Returns:
        404 for an unknown project
    """
    body = await request.body()
    try:
        project, event = admit_dockerhub(org, repo, commit, body, request.app.state.projects)
    except UnknownProjectError as e:
        logger.warning(f"[GATEWAY] Rejected Docker Hub push: {e}")
        raise HTTPException(status_code=404, detail=str(e))

    return _schedule(request, background_tasks, project, event)
