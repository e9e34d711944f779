from __future__ import annotations

from pydantic import BaseModel


class OkResponse(BaseModel):
    success: bool = True
    message: str | None = None


class UserOut(BaseModel):
    id: str
    email: str
    name: str

    class Config:
        from_attributes = True
