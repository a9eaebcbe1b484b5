"""
Module: destination.py
Description: Destination model (a configured external HTTP endpoint).

Destinations are owned by the host's endpoint management; the delivery
engine only reads them and snapshots them into job envelopes.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Destination(BaseModel):
    """
    External endpoint that receives event notifications.

    Attributes:
        destination_id: Stable destination identifier
        name: Optional human-readable name
        endpoint_url: URL the payload is POSTed to
        auth_header: Optional value for the Authorization header
        enabled: Disabled destinations are never dispatched to
        triggers: Trigger names this destination subscribes to
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    destination_id: str = Field(..., min_length=1, description="Destination identifier")
    name: Optional[str] = Field(default=None, description="Display name")
    endpoint_url: str = Field(..., description="Endpoint URL")
    auth_header: Optional[str] = Field(default=None, description="Authorization header value")
    enabled: bool = Field(default=True, description="Whether deliveries are enabled")
    triggers: List[str] = Field(default_factory=list, description="Subscribed trigger names")
