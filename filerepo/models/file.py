"""File model — an uploaded object and where it lives in storage."""

from sqlalchemy import BigInteger, Column, Index, String, Text, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class File(Base):
    """An uploaded file.

    ``file_name`` is the display name as given by the user. ``file_path`` is
    the storage-relative location, whose basename is generated and therefore
    differs from ``file_name``. A null ``folder_id`` places the file in the
    owner's root namespace.
    """

    __tablename__ = "files"
    __table_args__ = (
        Index("ix_files_user_id", "user_id"),
        Index("ix_files_folder_id", "folder_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    folder_id = Column(Integer, ForeignKey("folders.id"), nullable=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False, unique=True)
    file_type = Column(String(255), nullable=False, default="application/octet-stream")
    file_size = Column(BigInteger, nullable=False, default=0)
    is_archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User")

    @property
    def extension(self) -> str:
        """Extension of the stored object, without the dot ('' if none)."""
        basename = self.file_path.rsplit("/", 1)[-1]
        if "." not in basename.strip("."):
            return ""
        return basename.rsplit(".", 1)[-1]

    @property
    def download_name(self) -> str:
        """Display name with the stored extension appended if it lacks it."""
        ext = self.extension
        if not ext or self.file_name.lower().endswith("." + ext.lower()):
            return self.file_name
        return f"{self.file_name}.{ext}"
