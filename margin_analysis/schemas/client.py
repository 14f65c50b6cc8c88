from pydantic import BaseModel, Field, field_validator
from datetime import datetime


class ClientCreate(BaseModel):
    client_name: str = Field(..., min_length=1, max_length=255)

    @field_validator("client_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("client_name cannot be blank")
        return v


class ClientUpdate(ClientCreate):
    pass


class ClientResponse(BaseModel):
    id: int
    client_name: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
