"""Pydantic models for the web API."""

from typing import Any, Optional

from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Envelope for every response.

    ``error_data`` carries a typed error record (``{"type": ...}``) for
    failures the client is expected to handle.
    """

    success: bool
    data: Optional[Any] = None
    error_data: Optional[Any] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ApiResponse":
        return cls(success=True, data=data)

    @classmethod
    def error_with_data(cls, error_data: Any, message: Optional[str] = None) -> "ApiResponse":
        return cls(success=False, error_data=error_data, message=message)


class CreatePrBody(BaseModel):
    """Create PR request."""

    repo_id: str
    title: str
    body: Optional[str] = None
    target_branch: Optional[str] = None
    draft: Optional[bool] = None
    auto_generate_description: bool = False
    open_in_browser: bool = True


class RepoRequest(BaseModel):
    """Request naming one repository of the workspace."""

    repo_id: str


class AutoPrBody(BaseModel):
    """Auto-PR request; unset values come from project and global settings."""

    is_draft: Optional[bool] = None
    auto_generate_description: Optional[bool] = None
