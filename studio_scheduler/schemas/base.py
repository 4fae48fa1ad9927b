"""Pydantic bases shared by the scheduling schemas."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Value objects: unknown fields are rejected and assignments re-validated."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Inbound payloads from the API layer."""


class OrmResponseModel(StrictModel):
    """Responses read straight off ORM rows."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, from_attributes=True)
