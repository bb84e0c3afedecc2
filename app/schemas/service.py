"""Service catalog schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ServiceInputResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    label: str
    input_type: str
    options: list[str] | None
    is_required: bool
    sort_order: int


class ServiceResponse(BaseModel):
    """Active service with the fields a booking must supply."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    service_type: str
    name: str
    description: str | None
    image_url: str | None
    base_price: int | None
    currency: str
    inputs: list[ServiceInputResponse] = []
