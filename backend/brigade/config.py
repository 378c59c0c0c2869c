"""
Service configuration.

Settings come from BRIGADE_* environment variables, one per field
(``BRIGADE_PORT``, ``BRIGADE_DB_PATH``, ...). Unset variables keep the
defaults below. Values are validated by pydantic, so a malformed number
fails at startup rather than on the first request.
"""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

from .jobs.models import DEFAULT_IMAGE, DEFAULT_POLICY, JobPolicy

ENV_PREFIX = "BRIGADE_"


class Settings(BaseModel):
    """Runtime settings of the gateway and the build runtime."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 7744

    # State
    db_path: str = "./brigade.db"
    projects_file: Optional[str] = None
    work_dir: Optional[str] = None

    log_level: str = "INFO"

    # "package.module:function" called as setup(runtime) for every build
    handlers: Optional[str] = None

    # Jobs
    poll_interval: float = 2.0
    default_image: str = DEFAULT_IMAGE
    default_timeout: float = 900

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read instead of os.environ

        Raises:
            pydantic.ValidationError: If a variable has an invalid value
        """
        if environ is None:
            environ = os.environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None and raw != "":
                values[name] = raw
        return cls.model_validate(values)

    def default_policy(self) -> JobPolicy:
        """Job policy defaults with the configured timeout applied."""
        return DEFAULT_POLICY.model_copy(update={"timeout_seconds": self.default_timeout})
