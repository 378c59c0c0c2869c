"""
Admission gateway tests.

Uses FastAPI's TestClient; background builds finish before the client
call returns, so handler invocations can be asserted directly.

Invariants Tested:
------------------
- A signed GitHub delivery is admitted and dispatched exactly once
- An unsigned or badly signed delivery is rejected and dispatches nothing
- Docker Hub pushes take their commit from the URL
- Handler outcomes never change the response status
"""

import json

import pytest
from fastapi.testclient import TestClient

from brigade.config import Settings
from brigade.gateway.errors import SignatureError
from brigade.gateway.github import parse_delivery
from brigade.gateway.signature import compute_signature, verify_signature
from brigade.main import create_app
from brigade.projects.registry import ProjectRegistry


PUSH_PAYLOAD = {
    "ref": "refs/heads/master",
    "after": "589e15029e1e44dee48de4800daf1f78e64287c0",
    "repository": {"full_name": "deis/empty-testbed"},
    "head_commit": {"id": "589e15029e1e44dee48de4800daf1f78e64287c0"},
}


class HandlerLog:
    """Setup callable recording every event the build runtime fires."""

    def __init__(self, fail_on=None):
        self.events = []
        self.fail_on = fail_on

    def __call__(self, runtime):
        for event_type in ("push", "imagePush", "pull_request", "after", "error"):
            runtime.on(event_type, self._handle)

    def _handle(self, event, project):
        self.events.append(event)
        if event.type == self.fail_on:
            raise RuntimeError("handler failed")

    def of_type(self, event_type):
        return [e for e in self.events if e.type == event_type]


@pytest.fixture
def handlers():
    return HandlerLog()


@pytest.fixture
def client(project, substrate, persistence, handlers, tmp_path):
    app = create_app(
        settings=Settings(db_path=str(tmp_path / "brigade.db"), poll_interval=0.01),
        projects=ProjectRegistry([project]),
        substrate=substrate,
        persistence=persistence,
        setup=handlers,
    )
    return TestClient(app)


def post_github(client, payload, event_type="push", secret="MySecret", header="X-Hub-Signature"):
    body = json.dumps(payload).encode("utf-8")
    headers = {"X-GitHub-Event": event_type, "Content-Type": "application/json"}
    if secret is not None:
        algorithm = "sha256" if header.endswith("256") else "sha1"
        headers[header] = compute_signature(body, secret, algorithm)
    return client.post("/events/github", content=body, headers=headers)


# =============================================================================
# Signatures
# =============================================================================

def test_signature_roundtrip():
    body = b'{"hello": "world"}'
    verify_signature(body, compute_signature(body, "s3cret"), "s3cret")
    verify_signature(body, compute_signature(body, "s3cret", "sha256"), "s3cret")


@pytest.mark.parametrize("header", ["", "sha1", "md5=abc", "sha1=deadbeef"])
def test_bad_signatures_rejected(header):
    with pytest.raises(SignatureError):
        verify_signature(b"{}", header, "s3cret")


def test_missing_secret_rejected():
    body = b"{}"
    with pytest.raises(SignatureError):
        verify_signature(body, compute_signature(body, ""), "")


# =============================================================================
# GitHub payload adapter
# =============================================================================

def test_parse_push_delivery():
    delivery = parse_delivery(json.dumps(PUSH_PAYLOAD).encode())
    assert delivery.repository == "deis/empty-testbed"
    assert delivery.commit == PUSH_PAYLOAD["after"]
    assert delivery.ref == "refs/heads/master"


def test_parse_pull_request_delivery():
    payload = {
        "repository": {"full_name": "deis/empty-testbed"},
        "pull_request": {"head": {"sha": "abc123", "ref": "feature"}},
    }
    delivery = parse_delivery(json.dumps(payload).encode())
    assert delivery.commit == "abc123"
    assert delivery.ref == "feature"


# =============================================================================
# /events/github
# =============================================================================

def test_signed_push_dispatched_once(client, handlers, project):
    """
    ADMISSION TEST.

    GIVEN:
        - A registered project with a shared secret
        - A push handler
    WHEN:
        - A correctly signed push is posted
    THEN:
        - 200
        - The push handler ran exactly once with provider "github"
    """
    response = post_github(client, PUSH_PAYLOAD)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "accepted"
    assert body["project_id"] == project.id

    pushes = handlers.of_type("push")
    assert len(pushes) == 1
    assert pushes[0].provider == "github"
    assert pushes[0].commit == PUSH_PAYLOAD["after"]
    assert pushes[0].ref == "refs/heads/master"
    assert pushes[0].id == body["event_id"]
    assert json.loads(pushes[0].payload) == PUSH_PAYLOAD
    assert len(handlers.of_type("after")) == 1


def test_sha256_signature_accepted(client, handlers):
    response = post_github(client, PUSH_PAYLOAD, header="X-Hub-Signature-256")
    assert response.status_code == 200
    assert len(handlers.of_type("push")) == 1


def test_bad_signature_rejected(client, handlers):
    """A delivery signed with the wrong secret is refused and not dispatched."""
    response = post_github(client, PUSH_PAYLOAD, secret="WrongSecret")
    assert response.status_code == 403
    assert handlers.events == []


def test_missing_signature_rejected(client, handlers):
    response = post_github(client, PUSH_PAYLOAD, secret=None)
    assert response.status_code == 403
    assert handlers.events == []


def test_tampered_body_rejected(client, handlers):
    body = json.dumps(PUSH_PAYLOAD).encode("utf-8")
    headers = {
        "X-GitHub-Event": "push",
        "X-Hub-Signature": compute_signature(body, "MySecret"),
    }
    response = client.post("/events/github", content=body + b" ", headers=headers)
    assert response.status_code == 403
    assert handlers.events == []


def test_missing_event_header(client, handlers):
    body = json.dumps(PUSH_PAYLOAD).encode("utf-8")
    response = client.post(
        "/events/github",
        content=body,
        headers={"X-Hub-Signature": compute_signature(body, "MySecret")},
    )
    assert response.status_code == 400
    assert handlers.events == []


def test_unreadable_payload(client):
    response = client.post(
        "/events/github",
        content=b"not json",
        headers={"X-GitHub-Event": "push"},
    )
    assert response.status_code == 400


def test_unknown_repository(client, handlers):
    payload = dict(PUSH_PAYLOAD, repository={"full_name": "someone/else"})
    response = post_github(client, payload)
    assert response.status_code == 404
    assert handlers.events == []


def test_ping_not_dispatched(client, handlers):
    payload = {"zen": "Keep it simple.", "repository": {"full_name": "deis/empty-testbed"}}
    response = post_github(client, payload, event_type="ping")
    assert response.status_code == 200
    assert response.json()["status"] == "pong"
    assert handlers.events == []


def test_handler_failure_still_200(project, substrate, persistence, tmp_path):
    """Admission succeeds even when the handler fails; error is fired."""
    handlers = HandlerLog(fail_on="push")
    app = create_app(
        settings=Settings(db_path=str(tmp_path / "brigade.db")),
        projects=ProjectRegistry([project]),
        substrate=substrate,
        persistence=persistence,
        setup=handlers,
    )

    response = post_github(TestClient(app), PUSH_PAYLOAD)

    assert response.status_code == 200
    errors = handlers.of_type("error")
    assert len(errors) == 1
    assert errors[0].cause.event_id == response.json()["event_id"]
    assert handlers.of_type("after") == []


# =============================================================================
# /events/dockerhub
# =============================================================================

def test_dockerhub_push(client, handlers, project):
    """The commit comes from the path; the body stays raw."""
    body = b'{"push_data": {"tag": "latest"}}'
    response = client.post("/events/dockerhub/deis/empty-testbed/v1.2.3", content=body)

    assert response.status_code == 200
    pushes = handlers.of_type("imagePush")
    assert len(pushes) == 1
    assert pushes[0].commit == "v1.2.3"
    assert pushes[0].provider == "dockerhub"
    assert pushes[0].payload == body
    assert pushes[0].project_id == project.id


def test_dockerhub_unknown_project(client, handlers):
    response = client.post("/events/dockerhub/nobody/nothing/abc", content=b"{}")
    assert response.status_code == 404
    assert handlers.events == []


# =============================================================================
# Health
# =============================================================================

def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
