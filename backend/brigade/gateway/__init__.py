"""
Event admission gateway.

HTTP adapters that verify provider webhooks, build Events and hand them to
a build runtime.
"""

from .admission import admit_dockerhub, admit_github
from .errors import AdmissionError, MalformedRequestError, SignatureError, UnknownProjectError
from .routes import health_router, router
from .signature import compute_signature, verify_signature

__all__ = [
    "admit_dockerhub",
    "admit_github",
    "AdmissionError",
    "MalformedRequestError",
    "SignatureError",
    "UnknownProjectError",
    "health_router",
    "router",
    "compute_signature",
    "verify_signature",
]
