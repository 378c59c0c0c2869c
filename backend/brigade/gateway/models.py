"""
Response models for the admission API.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response for health check endpoint."""
    
    model_config = ConfigDict(extra="forbid")
    
    status: str = "ok"


class AdmissionResponse(BaseModel):
    """
    Response for an admitted webhook.
    
    ``status`` is "accepted" when an event was dispatched and "pong" for
    a GitHub ping, which dispatches nothing.
    """
    
    model_config = ConfigDict(extra="forbid")
    
    status: str
    event_id: Optional[str] = None
    build_id: Optional[str] = None
    type: Optional[str] = None
    project_id: Optional[str] = None
