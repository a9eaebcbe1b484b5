"""
Module: schema.py
Description: Per (destination, trigger) transformation schema.

The schema store keeps the first payload seen for a pair as an example
for operators, plus the operator's field mapping and enrichment flag.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldMappingRule(BaseModel):
    """Copy the value at ``source`` to ``target`` (dot-notation paths)."""

    source: str = ""
    target: str = ""


class FieldMapping(BaseModel):
    """
    Field mapping configuration.

    Serialized with the camelCase ``includeUnmapped`` key used by the
    admin tooling that writes it.
    """

    model_config = ConfigDict(populate_by_name=True)

    mappings: List[FieldMappingRule] = Field(default_factory=list)
    excluded: List[str] = Field(default_factory=list)
    include_unmapped: bool = Field(default=True, alias="includeUnmapped")


class TriggerSchema(BaseModel):
    """Transformation settings for one (destination, trigger) pair."""

    destination_id: str = Field(..., min_length=1)
    trigger_name: str = Field(..., min_length=1)
    example_payload: Optional[Dict[str, Any]] = None
    field_mapping: Optional[FieldMapping] = None
    include_user_data: bool = False
    captured_at: Optional[datetime] = None

    @field_validator('example_payload', mode='before')
    @classmethod
    def decode_example(cls, v: Any) -> Any:
        if isinstance(v, str):
            return json.loads(v) if v else None
        return v

    @field_validator('field_mapping', mode='before')
    @classmethod
    def decode_mapping(cls, v: Any) -> Any:
        """Accept JSON strings; an empty configuration means no mapping."""
        if isinstance(v, str):
            v = json.loads(v) if v.strip() else None
        if not v:
            return None
        return v
