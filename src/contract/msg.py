from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator

from state.models import U64_MAX


class HostBlock(BaseModel):
    """Block info supplied by the host with each call. Heights are never coerced."""

    height: StrictInt = Field(ge=0, le=U64_MAX)
    time: StrictInt = Field(default=0, ge=0)


class InstantiateMsg(BaseModel):
    model_config = ConfigDict(extra="forbid")

    broadcast: str


class StoreKey(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str
    recipient: str = Field(min_length=1)


class RetrieveKey(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: int = Field(ge=0, le=U64_MAX)


class GetKeyDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: int = Field(ge=0, le=U64_MAX)


class _Tagged(BaseModel):
    """Externally tagged enum: exactly one snake_case variant key is set."""

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def check_exactly_one(self):
        set_fields = [name for name in type(self).model_fields if getattr(self, name) is not None]
        if len(set_fields) != 1:
            raise ValueError(f"expected exactly one variant, got {len(set_fields)}")
        return self

    @property
    def variant(self) -> Any:
        # check_exactly_one guarantees a single non-None field
        values = [getattr(self, name) for name in type(self).model_fields]
        return [v for v in values if v is not None][0]


class ExecuteMsg(_Tagged):
    """`{"store_key": {...}}` or `{"retrieve_key": {...}}`."""

    store_key: Optional[StoreKey] = None
    retrieve_key: Optional[RetrieveKey] = None

    @property
    def variant(self) -> Union[StoreKey, RetrieveKey]:
        return super().variant


class QueryMsg(_Tagged):
    """`{"get_key_details": {"key": <u64>}}`."""

    get_key_details: Optional[GetKeyDetails] = None

    @property
    def variant(self) -> GetKeyDetails:
        return super().variant


@dataclass
class Response:
    """Ordered string attributes describing an action and its outcome."""

    attributes: List[Tuple[str, str]] = field(default_factory=list)

    def add_attribute(self, key: str, value: Any) -> "Response":
        self.attributes.append((key, str(value)))
        return self

    def get(self, key: str) -> Optional[str]:
        for k, v in self.attributes:
            if k == key:
                return v
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"attributes": [{"key": k, "value": v} for k, v in self.attributes]}
