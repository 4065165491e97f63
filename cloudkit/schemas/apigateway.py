"""API Gateway documentation part responses."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from cloudkit.schemas.base import ResponseModel, ResponseParseError


class DocumentationPartType(str, Enum):
    API = "API"
    AUTHORIZER = "AUTHORIZER"
    MODEL = "MODEL"
    RESOURCE = "RESOURCE"
    METHOD = "METHOD"
    PATH_PARAMETER = "PATH_PARAMETER"
    QUERY_PARAMETER = "QUERY_PARAMETER"
    REQUEST_HEADER = "REQUEST_HEADER"
    REQUEST_BODY = "REQUEST_BODY"
    RESPONSE = "RESPONSE"
    RESPONSE_HEADER = "RESPONSE_HEADER"
    RESPONSE_BODY = "RESPONSE_BODY"


class DocumentationPartLocation(ResponseModel):
    """Where a documentation part applies within an API."""

    type: str | None = None
    path: str | None = None
    method: str | None = None
    status_code: str | None = None
    name: str | None = None

    @property
    def part_type(self) -> DocumentationPartType | None:
        """Known location type, or None for absent and unrecognised values."""
        if self.type is None:
            return None
        try:
            return DocumentationPartType(self.type)
        except ValueError:
            return None


class GetDocumentationPartResult(ResponseModel):
    id: str | None = None
    location: DocumentationPartLocation | None = None
    properties: str | None = None

    def parsed_properties(self) -> dict[str, Any]:
        """Decode ``properties``, which the service returns as a JSON string."""
        if not self.properties:
            return {}
        try:
            value = json.loads(self.properties)
        except json.JSONDecodeError as exc:
            raise ResponseParseError(
                f"Documentation part properties are not JSON: {exc}"
            ) from exc
        if not isinstance(value, dict):
            raise ResponseParseError("Documentation part properties must be an object")
        return value
