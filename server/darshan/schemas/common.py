"""Schemas shared by the RPC routers: error bodies and temple-scoped requests."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Violation(BaseModel):
    """One failing field of a rejected request."""

    path: str = Field(..., description="Dotted location, e.g. body.visitor_count")
    message: str = Field(..., description="Why the value was rejected")


class Problem(BaseModel):
    """
    RFC 9457 error body returned by every /v1 route.

    Only the extension matching the error kind is present: ``violations``
    on 422, ``required_roles`` on 403, ``resource_type`` on 404 and
    ``service`` when an upstream or the store failed.
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="Problem type URI")
    title: str = Field(..., description="Short summary of the problem type")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Explanation of this occurrence")
    instance: Optional[str] = Field(None, description="Request path that failed")
    violations: Optional[List[Violation]] = Field(None, description="Failing fields")
    required_roles: Optional[List[str]] = Field(None, description="Any of these roles grants access")
    resource_type: Optional[str] = Field(None, description="Kind of record that was not found")
    service: Optional[str] = Field(None, description="Failing dependency")


def _problem(description: str) -> Dict[str, Any]:
    return {
        "model": Problem,
        "description": description,
        "content": {"application/problem+json": {}},
    }


# OpenAPI documentation for the errors every authenticated RPC route can return
PROBLEM_RESPONSES: Dict[int, Dict[str, Any]] = {
    401: _problem("Missing or invalid bearer token"),
    403: _problem("Caller lacks a required role or does not own the record"),
    404: _problem("Referenced record does not exist"),
    409: _problem("Request conflicts with the record's current state"),
    422: _problem("Request body failed validation"),
    502: _problem("An upstream service failed"),
}


class TempleRequest(BaseModel):
    """Request naming one temple."""

    temple_id: str = Field(..., min_length=1, description="Temple ID")
