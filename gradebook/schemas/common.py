# gradebook/schemas/common.py
"""Shared schema pieces: camelCase wire format and id references."""
from datetime import date, datetime, timezone
from typing import Annotated, Any, List, Optional, Union
from uuid import UUID

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request body whose JSON keys are camelCase while attributes stay snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IdObject(BaseModel):
    id: UUID = Field(validation_alias=AliasChoices("_id", "id"))


def _flatten_refs(refs: List[Union[UUID, IdObject]]) -> List[UUID]:
    flattened: List[UUID] = []
    for ref in refs:
        ref_id = ref.id if isinstance(ref, IdObject) else ref
        if ref_id not in flattened:
            flattened.append(ref_id)
    return flattened


# Accepts ["<uuid>", {"_id": "<uuid>"}, ...] and always yields a de-duplicated [UUID, ...]
IdRefList = Annotated[List[Union[UUID, IdObject]], AfterValidator(_flatten_refs)]


def iso(value: Optional[Union[date, datetime]]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def str_id(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Columns store naive UTC; aware inputs are converted first."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
