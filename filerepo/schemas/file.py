"""File schemas."""

from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import Optional

from .folder import validate_display_name


class FileRename(BaseModel):
    """Schema for renaming a file. The display name is kept as typed; the stored extension does not change."""
    file_name: str

    @field_validator('file_name')
    @classmethod
    def validate_file_name(cls, v: str) -> str:
        return validate_display_name(v)

    model_config = {
        "json_schema_extra": {"examples": [{"file_name": "Q1 report"}]}
    }


class FileResponse(BaseModel):
    """Schema for file response."""
    id: int
    user_id: int
    folder_id: Optional[int] = None
    file_name: str
    file_path: str
    file_type: str
    file_size: int
    is_archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    file_url: Optional[str] = None

    class Config:
        from_attributes = True
