"""
Module: actor.py
Description: Actor (host user) model used for payload enrichment.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class Actor(BaseModel):
    """Host user attached to a payload under the ``user`` key."""

    id: Union[int, str]
    login: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    registered: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """Payload representation; meta is omitted when empty."""
        data = self.model_dump(exclude={'meta'})
        if self.meta:
            data['meta'] = dict(self.meta)
        return data
