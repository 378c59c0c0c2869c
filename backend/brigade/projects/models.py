"""
Project model.

A project binds a repository to the secrets, webhook key and cluster
settings its builds run with. Projects are frozen: handler logic reads
them for the duration of one dispatch and can never mutate them.
"""

import hashlib
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# Project ids are "brigade-" followed by a truncated hash of the name,
# keeping the id usable as a Kubernetes object name
PROJECT_ID_PREFIX = "brigade-"
PROJECT_ID_HASH_LENGTH = 54


def project_id_for(name: str) -> str:
    """
    Derive the project id for a project name such as "org/repo".
    
    Args:
        name: Project name, usually the repository full name
        
    Returns:
        Deterministic project identifier
    """
    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()
    return PROJECT_ID_PREFIX + digest[:PROJECT_ID_HASH_LENGTH]


class Repository(BaseModel):
    """Source repository a project builds from."""
    
    model_config = ConfigDict(extra="forbid", frozen=True)
    
    name: str
    clone_url: Optional[str] = None
    ssh_key: Optional[str] = Field(default=None, repr=False)


class KubernetesConfig(BaseModel):
    """Cluster settings applied to every job of a project."""
    
    model_config = ConfigDict(extra="forbid", frozen=True)
    
    namespace: str = "default"
    vcs_sidecar: Optional[str] = None
    build_storage_size: str = "50Mi"
    build_storage_class: Optional[str] = None
    cache_storage_class: Optional[str] = None


class Project(BaseModel):
    """
    A build project.
    
    ``secrets`` is injected into job environments only where handler
    logic references it. ``shared_secret`` is the HMAC key for webhook
    admission and is never exposed to jobs.
    """
    
    model_config = ConfigDict(extra="forbid", frozen=True)
    
    id: str = ""
    name: str
    repository: Optional[Repository] = None
    kubernetes_config: KubernetesConfig = Field(default_factory=KubernetesConfig)
    secrets: Dict[str, str] = Field(default_factory=dict, repr=False)
    shared_secret: str = Field(default="", repr=False)
    
    # Security gate for job policies
    allow_privileged_jobs: bool = False
    
    @model_validator(mode="before")
    @classmethod
    def _derive_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id") and data.get("name"):
            data = {**data, "id": project_id_for(data["name"])}
        return data
