"""Base types for cloud API response models.

Response models mirror the JSON payload of a service call: a key that is
present is copied onto the model, an absent key leaves the field at its
default. Wire keys are camelCase; model fields are snake_case and bound to
the wire keys through aliases.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator
from pydantic.alias_generators import to_camel

ModelT = TypeVar("ModelT", bound="ResponseModel")


class ResponseParseError(ValueError):
    """Raised when a service payload cannot be mapped onto a response model."""


@dataclass(frozen=True, slots=True)
class ServiceResult:
    """Raw outcome of a service call: decoded JSON body plus transport data."""

    payload: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    status_code: int = 200

    @classmethod
    def from_json(
        cls,
        body: str | bytes | None,
        *,
        headers: Mapping[str, str] | None = None,
        status_code: int = 200,
    ) -> "ServiceResult":
        if isinstance(body, bytes):
            try:
                body = body.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ResponseParseError(f"Response body is not UTF-8: {exc}") from exc
        if body is None or not body.strip():
            payload: Any = {}
        else:
            try:
                payload = json.loads(body)
            except json.JSONDecodeError as exc:
                raise ResponseParseError(f"Response body is not JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ResponseParseError(
                f"Response body must be a JSON object, got {type(payload).__name__}"
            )
        return cls(payload=payload, headers=dict(headers or {}), status_code=status_code)


class ResponseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
        strict=True,
    )

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # null on the wire means the same as a missing key
        if isinstance(data, Mapping):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @classmethod
    def from_result(
        cls: type[ModelT], result: ServiceResult | Mapping[str, Any]
    ) -> ModelT:
        payload = result.payload if isinstance(result, ServiceResult) else result
        if not isinstance(payload, Mapping):
            raise ResponseParseError(
                f"{cls.__name__} payload must be a JSON object, "
                f"got {type(payload).__name__}"
            )
        try:
            return cls.model_validate(dict(payload))
        except ValidationError as exc:
            raise ResponseParseError(f"Invalid {cls.__name__} payload: {exc}") from exc

    def to_payload(self) -> dict[str, Any]:
        """Wire-shaped dict with camelCase keys; fields never set are dropped."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")
