"""
Module: payload.py
Description: Schema-driven payload transformation.

For every (destination, trigger) pair the transformer consults the
trigger schema store:

- no schema yet: the payload is captured as the pair's example and
  passed through unchanged
- schema without an example: the example is captured, output unaffected
- include_user_data: the actor behind the event is merged under 'user'
- field_mapping: explicit source -> target copies, then (optionally) every
  unmapped, non-excluded path at its original location

Key Components:
- PayloadTransformer: transform(), actor enrichment trigger lookups
- TransformResult: transformed payload, audit copy and mapping flag
- ActorDirectory: collaborator resolving actors by id or from context

Dependencies: pydantic
Author: Hookrelay Team
"""

import copy
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set

from pydantic import BaseModel

from hookrelay.config.settings import Settings, settings as default_settings
from hookrelay.models.actor import Actor
from hookrelay.models.schema import FieldMapping
from hookrelay.storage.schema_store import DynamoDBSchemaStore
from hookrelay.transform.paths import MISSING, flatten, get_value_by_path, set_value_by_path
from hookrelay.utils.logger import get_logger
from hookrelay.utils.timeutils import Clock, utcnow

logger = get_logger(__name__)


class ActorDirectory(Protocol):
    """Host-side actor lookups used for enrichment."""

    async def get_by_id(self, actor_id: int) -> Optional[Actor]:
        ...

    async def current(self) -> Optional[Actor]:
        ...


class TransformResult(BaseModel):
    """
    Output of PayloadTransformer.transform().

    Attributes:
        transformed: Payload to deliver
        original: Pre-transform payload, only when mapping_applied
        mapping_applied: Whether enrichment or a field mapping changed the payload
    """

    transformed: Dict[str, Any]
    original: Optional[Dict[str, Any]] = None
    mapping_applied: bool = False


def _iter_args(raw_args: Any) -> Iterable[Any]:
    if isinstance(raw_args, dict):
        return raw_args.values()
    if isinstance(raw_args, (list, tuple)):
        return raw_args
    return ()


def find_actor_id(raw_args: Any) -> Optional[int]:
    """First positive integer (or digit string) among the event args."""
    for arg in _iter_args(raw_args):
        if isinstance(arg, bool):
            continue
        if isinstance(arg, int) and arg > 0:
            return arg
        if isinstance(arg, str) and arg.isdigit() and int(arg) > 0:
            return int(arg)
    return None


def find_actor_object(raw_args: Any) -> Optional[Actor]:
    for arg in _iter_args(raw_args):
        if isinstance(arg, Actor):
            return arg
    return None


def _is_excluded(path: str, excluded: List[str]) -> bool:
    return any(path == rule or path.startswith(rule + ".") for rule in excluded)


def apply_field_mapping(payload: Dict[str, Any], mapping: FieldMapping) -> Dict[str, Any]:
    """
    Build a new payload from a field mapping.

    Explicit mappings are applied first and skipped when the source path
    does not exist. With include_unmapped, every flattened path that was
    not a mapping source and is not excluded (exact or prefix match) is
    copied back at its original path.
    """
    result: Dict[str, Any] = {}
    consumed: Set[str] = set()

    for rule in mapping.mappings:
        if not rule.source or not rule.target:
            continue
        consumed.add(rule.source)
        value = get_value_by_path(payload, rule.source)
        if value is MISSING:
            continue
        set_value_by_path(result, rule.target, copy.deepcopy(value))

    if mapping.include_unmapped:
        for path, value in flatten(payload).items():
            if path in consumed or _is_excluded(path, mapping.excluded):
                continue
            set_value_by_path(result, path, copy.deepcopy(value))

    return result


class PayloadTransformer:
    """
    Applies per-destination transformation to dispatched payloads.

    Example:
        >>> transformer = PayloadTransformer(schema_store, actor_directory)
        >>> result = await transformer.transform("dest_1", "user_register", payload, [42])
        >>> result.mapping_applied
        True
    """

    def __init__(
        self,
        schema_store: DynamoDBSchemaStore,
        actor_directory: Optional[ActorDirectory] = None,
        config: Optional[Settings] = None,
        clock: Clock = utcnow
    ):
        self.schema_store = schema_store
        self.actor_directory = actor_directory
        self.config = config or default_settings
        self.clock = clock

    def supports_actor_enrichment(self, trigger: str) -> bool:
        return trigger in self.actor_enrichment_triggers()

    def actor_enrichment_triggers(self) -> List[str]:
        """All triggers for which an actor can be resolved."""
        return (
            list(self.config.user_id_triggers)
            + list(self.config.user_object_triggers)
            + list(self.config.current_user_triggers)
        )

    async def resolve_actor(self, trigger: str, raw_args: Any) -> Optional[Actor]:
        """
        Resolve the actor behind an event using the trigger's category.

        Id triggers look the first numeric arg up in the actor directory,
        object triggers use an Actor passed in the args, and current-user
        triggers ask the directory for the ambient actor.
        """
        actor = None

        if trigger in self.config.user_id_triggers and self.actor_directory is not None:
            actor_id = find_actor_id(raw_args)
            if actor_id is not None:
                actor = await self.actor_directory.get_by_id(actor_id)

        if trigger in self.config.user_object_triggers:
            actor = find_actor_object(raw_args)

        if trigger in self.config.current_user_triggers and self.actor_directory is not None:
            actor = await self.actor_directory.current()

        return actor

    async def transform(
        self,
        destination_id: str,
        trigger: str,
        payload: Dict[str, Any],
        raw_args: Any = None
    ) -> TransformResult:
        """
        Transform a payload for one destination.

        Args:
            destination_id: Destination receiving the payload
            trigger: Trigger name
            payload: Canonical event payload (not modified)
            raw_args: Original trigger arguments, used for actor enrichment

        Returns:
            TransformResult
        """
        schema = await self.schema_store.get_schema(destination_id, trigger)

        if schema is None or schema.example_payload is None:
            await self.schema_store.capture_example(destination_id, trigger, payload, self.clock())
        if schema is None:
            return TransformResult(transformed=payload)

        transformed = copy.deepcopy(payload)
        mapping_applied = False

        if schema.include_user_data:
            actor = await self.resolve_actor(trigger, raw_args)
            if actor is not None:
                transformed['user'] = actor.to_payload()
                mapping_applied = True
            else:
                logger.debug("No actor resolved for enrichment", destination_id=destination_id, trigger=trigger)

        if schema.field_mapping is not None:
            transformed = apply_field_mapping(transformed, schema.field_mapping)
            mapping_applied = True

        if mapping_applied:
            logger.debug(
                "Payload transformed",
                destination_id=destination_id,
                trigger=trigger,
                mappings=len(schema.field_mapping.mappings) if schema.field_mapping else 0
            )

        return TransformResult(
            transformed=transformed,
            original=payload if mapping_applied else None,
            mapping_applied=mapping_applied
        )
