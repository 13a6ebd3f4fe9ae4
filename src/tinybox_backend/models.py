# basedpyright: reportAssignmentType=false
# basedpyright: reportIncompatibleVariableOverride=false

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column
from sqlalchemy.types import JSON as SAJSON
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """Local mirror of an identity-provider account."""

    __tablename__ = "users"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: Optional[int] = Field(default=None, primary_key=True)
    email: Optional[str] = Field(default=None, max_length=320, index=True)
    # Bearer credential issued by the identity provider.
    access_token: str = Field(index=True, unique=True, min_length=1, max_length=255)
    # Raw provider metadata (full_name / name / display_name ...).
    profile_json: dict[str, Any] = Field(default_factory=dict, sa_column=Column(SAJSON))

    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)


class StoredFile(SQLModel, table=True):
    __tablename__ = "files"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: str = Field(primary_key=True, min_length=1, max_length=36)
    owner_id: int = Field(index=True, foreign_key="users.id")

    name: str = Field(min_length=1, max_length=255)
    storage_path: str = Field(min_length=1, max_length=512, index=True)
    is_public: bool = Field(default=False, index=True)
    # Set iff is_public.
    public_url: Optional[str] = Field(default=None, max_length=2048)
    size_bytes: int = Field(default=0)
    mime_type: Optional[str] = Field(default=None, max_length=255)

    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now, index=True)


class FileShare(SQLModel, table=True):
    __tablename__ = "file_shares"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: str = Field(primary_key=True, min_length=1, max_length=36)
    file_id: str = Field(index=True, foreign_key="files.id", min_length=1, max_length=36)
    owner_id: int = Field(index=True, foreign_key="users.id")

    # Never mutated after creation; carries the permanence marker.
    token: str = Field(index=True, unique=True, min_length=1, max_length=64)
    share_email: Optional[str] = Field(default=None, max_length=320)

    # Owner snapshot for the public page / e-mail.
    owner_email: Optional[str] = Field(default=None, max_length=320)
    owner_name: Optional[str] = Field(default=None, max_length=200)

    # Expiry base. Renewal resets it.
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)
