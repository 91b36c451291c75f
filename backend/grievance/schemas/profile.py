from pydantic import BaseModel, ConfigDict, Field


class ProfileCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    phone: str | None = Field(None, max_length=32)
    hostel: str | None = Field(None, max_length=200)


class ProfileUpdate(BaseModel):
    """
    Self-service profile edit.

    extra="forbid" so that fields such as ``role`` are rejected outright
    rather than silently ignored.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(None, min_length=1, max_length=200)
    phone: str | None = Field(None, max_length=32)
    hostel: str | None = Field(None, max_length=200)
