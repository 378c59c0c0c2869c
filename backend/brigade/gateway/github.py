"""
GitHub webhook adapter.

Extracts what admission needs (repository name, commit, ref) from a
webhook body. The body itself is kept raw on the Event; handlers parse it
if they need more.

Commit lookup order:
- push: "after", then "head_commit.id"
- pull_request: "pull_request.head.sha"
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import MalformedRequestError

PING_EVENT = "ping"

# "after" of a branch deletion push
NULL_COMMIT = "0" * 40


@dataclass(frozen=True)
class GithubDelivery:
    """Admission-relevant fields of one webhook delivery."""
    repository: str
    commit: Optional[str] = None
    ref: Optional[str] = None


def _dig(data: Dict[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def parse_delivery(body: bytes) -> GithubDelivery:
    """
    Parse a webhook body.

    Raises:
        MalformedRequestError: If the body is not a JSON object or has no
            repository.full_name
    """
    try:
        data = json.loads(body)
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedRequestError(f"payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedRequestError("payload is not a JSON object")

    repository = _dig(data, "repository", "full_name")
    if not repository or not isinstance(repository, str):
        raise MalformedRequestError("payload has no repository.full_name")

    commit = data.get("after")
    if not commit or commit == NULL_COMMIT:
        commit = _dig(data, "head_commit", "id") or _dig(data, "pull_request", "head", "sha")

    ref = data.get("ref") or _dig(data, "pull_request", "head", "ref")

    return GithubDelivery(
        repository=repository,
        commit=commit if isinstance(commit, str) else None,
        ref=ref if isinstance(ref, str) else None,
    )
