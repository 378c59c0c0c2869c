"""
Admission errors.

Raised while turning an inbound webhook into an Event. Routes map each
type to one HTTP status; nothing here is dispatched.
"""


class AdmissionError(Exception):
    """Base exception for rejected webhook requests."""
    pass


class SignatureError(AdmissionError):
    """Raised when a request signature is missing or does not verify."""
    
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Signature rejected: {reason}")


class UnknownProjectError(AdmissionError):
    """Raised when a request names a project that is not registered."""
    
    def __init__(self, project_name: str):
        self.project_name = project_name
        super().__init__(f"Project not found: {project_name}")


class MalformedRequestError(AdmissionError):
    """Raised when required headers or payload fields are missing."""
    
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Malformed request: {reason}")
