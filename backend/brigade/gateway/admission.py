"""
Webhook admission.

Turns a raw provider request into a (project, Event) pair, or rejects it
with an AdmissionError. Nothing is dispatched here.

Check order for GitHub:
1. X-GitHub-Event header present
2. Payload parses and names a repository
3. Repository maps to a registered project
4. Signature verifies against the project's shared secret
"""

import logging
from typing import Mapping, Optional, Tuple

from ..events.models import Event, new_event
from ..projects.errors import ProjectNotFoundError
from ..projects.models import Project
from ..projects.registry import ProjectRegistry
from .errors import MalformedRequestError, UnknownProjectError
from .github import PING_EVENT, parse_delivery
from .signature import verify_signature

logger = logging.getLogger(__name__)

PROVIDER_GITHUB = "github"
PROVIDER_DOCKERHUB = "dockerhub"

EVENT_TYPE_IMAGE_PUSH = "imagePush"

GITHUB_EVENT_HEADER = "X-GitHub-Event"
SIGNATURE_HEADER = "X-Hub-Signature"
SIGNATURE_256_HEADER = "X-Hub-Signature-256"


def _find_project(projects: ProjectRegistry, name: str) -> Project:
    try:
        return projects.find_by_name(name)
    except ProjectNotFoundError as e:
        raise UnknownProjectError(name) from e


def admit_github(
    body: bytes,
    headers: Mapping[str, str],
    projects: ProjectRegistry,
) -> Tuple[Project, Optional[Event]]:
    """
    Admit a GitHub webhook delivery.

    Args:
        body: Raw request body
        headers: Request headers (case-insensitive mapping)
        projects: Registered projects

    Returns:
        (project, event). The event is None for a ping.

    Raises:
        MalformedRequestError: Missing event header or unreadable payload
        UnknownProjectError: Repository is not a registered project
        SignatureError: Missing or invalid signature
    """
    event_type = headers.get(GITHUB_EVENT_HEADER)
    if not event_type:
        raise MalformedRequestError(f"missing {GITHUB_EVENT_HEADER} header")

    delivery = parse_delivery(body)
    project = _find_project(projects, delivery.repository)

    # sha1 wins when both headers are sent
    signature = headers.get(SIGNATURE_HEADER) or headers.get(SIGNATURE_256_HEADER) or ""
    verify_signature(body, signature, project.shared_secret)

    if event_type == PING_EVENT:
        logger.info(f"[GATEWAY] Ping for '{project.name}'")
        return project, None

    event = new_event(
        type=event_type,
        provider=PROVIDER_GITHUB,
        payload=body,
        commit=delivery.commit,
        ref=delivery.ref,
        project_id=project.id,
    )
    return project, event


def admit_dockerhub(
    org: str,
    repo: str,
    commit: str,
    body: bytes,
    projects: ProjectRegistry,
) -> Tuple[Project, Event]:
    """
    Admit a Docker Hub push notification.

    Unauthenticated; the commit comes from the URL path.

    Raises:
        UnknownProjectError: "{org}/{repo}" is not a registered project
    """
    project = _find_project(projects, f"{org}/{repo}")
    event = new_event(
        type=EVENT_TYPE_IMAGE_PUSH,
        provider=PROVIDER_DOCKERHUB,
        payload=body,
        commit=commit,
        project_id=project.id,
    )
    return project, event
