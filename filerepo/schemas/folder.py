"""Folder schemas."""

from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import Optional

MAX_NAME_LENGTH = 255


def validate_display_name(v: str) -> str:
    """Shared rule for folder and file display names."""
    v = v.strip()
    if not v:
        raise ValueError("Name cannot be empty")
    if len(v) > MAX_NAME_LENGTH:
        raise ValueError(f"Name cannot exceed {MAX_NAME_LENGTH} characters")
    return v


class FolderCreate(BaseModel):
    """Schema for creating a folder. A missing parent_id creates it at the root."""
    folder_name: str
    parent_id: Optional[int] = None

    @field_validator('folder_name')
    @classmethod
    def validate_folder_name(cls, v: str) -> str:
        return validate_display_name(v)

    model_config = {
        "json_schema_extra": {
            "examples": [{"folder_name": "Tax Returns 2024", "parent_id": None}]
        }
    }


class FolderUpdate(BaseModel):
    """Schema for renaming and/or reparenting a folder.

    ``parent_id`` of ``None`` moves the folder to the owner's root.
    """
    folder_name: str
    parent_id: Optional[int] = None

    @field_validator('folder_name')
    @classmethod
    def validate_folder_name(cls, v: str) -> str:
        return validate_display_name(v)


class FolderResponse(BaseModel):
    """Schema for folder response."""
    id: int
    user_id: int
    folder_name: str
    parent_id: Optional[int] = None
    path: Optional[str] = None
    is_archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    folder_url: Optional[str] = None

    class Config:
        from_attributes = True
