"""Schema baselines: strict requests, attribute-friendly responses."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Neutral strict base for value objects."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class ORMResponseModel(BaseModel):
    """Response DTO base that can be built straight from ORM rows."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)
