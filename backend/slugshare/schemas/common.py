"""Shared Pydantic schemas."""
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class DeleteResponse(BaseModel):
    success: bool = True
    deleted: bool = True
    id: str = ""
