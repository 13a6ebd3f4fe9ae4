from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class StoredFileOut(BaseModel):
    id: str
    name: str
    is_public: bool
    public_url: str | None = None
    size_bytes: int
    mime_type: str | None = None
    created_at: datetime


class FileVisibilityUpdateRequest(BaseModel):
    is_public: bool


class ShareCreateRequest(BaseModel):
    share_email: str | None = Field(default=None, max_length=320)
    # Permanent links never expire; time-boxed links last 600 seconds from (re)creation.
    never_expires: bool = False


class ShareLinkOut(BaseModel):
    share_id: str
    file_id: str
    url: str
    token: str
    permanent: bool
    share_email: str | None = None
    created_at: datetime
    expires_at: datetime | None = None
    is_expired: bool


class ShareLinkListResponse(BaseModel):
    shares: list[ShareLinkOut] = Field(default_factory=list)


class SharedFileOut(BaseModel):
    name: str
    size_bytes: int
    mime_type: str | None = None
    is_public: bool


class ShareResolvedOut(BaseModel):
    file: SharedFileOut
    permanent: bool
    download_url: str
    download_expires_at: datetime | None = None
    share_expires_at: datetime | None = None
    owner_name: str | None = None
    owner_email: str | None = None
    shared_with: str | None = None
