"""Base schemas shared by every resource."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Parent of all response schemas.

    from_attributes=True lets `Schema.model_validate(orm_object)` read
    attributes straight off SQLAlchemy models.
    """

    model_config = ConfigDict(from_attributes=True)


class BaseResponse(BaseSchema):
    """Fields every persisted resource carries."""

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
