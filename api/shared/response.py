from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ResponseModel(BaseModel, Generic[T]):
    """Envelope returned by every chatbot endpoint."""

    data: Optional[T] = Field(description="Response data", default=None)
    message: Optional[str] = Field(description="Response message", examples=["Answer generated"])
    status: str = Field(default="ok", description="ok, or error when the query failed")

    @classmethod
    def success(
        cls, data: Optional[T] = None, message: str = "Success"
    ) -> "ResponseModel[T]":
        """Create a successful response."""
        return cls(data=data, message=message, status="ok")

    @classmethod
    def error(cls, message: str, data: Optional[T] = None) -> "ResponseModel[T]":
        """Create an error response; ``data`` still carries the conversation id."""
        return cls(data=data, message=message, status="error")
