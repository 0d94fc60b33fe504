from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Actor(BaseModel):
    """An authenticated caller. The engine records ownership, it never authenticates."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., title="Actor ID", description="Opaque identifier of the acting user.")
    display_name: str = Field(..., title="Display Name")
    email: Optional[str] = Field(None, title="Email")


class Breadcrumb(BaseModel):
    id: Optional[int] = Field(None, title="Node ID")
    uuid: Optional[str] = Field(None, title="Node UUID")
    name: str = Field(..., title="Node Name")
    slug: str = Field(..., title="Node Slug")


class TreeFields(BaseModel):
    full_slug: str = Field(..., title="Full Slug", description="Slash-joined slugs from the root to the node.")
    path: str = Field(..., title="Path", description="The full slug with a leading slash.")
    breadcrumbs: list[Breadcrumb] = Field(default_factory=list, title="Breadcrumbs")


class Locker(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None


class LockInfo(BaseModel):
    locked_by: str = Field(..., title="Lock Owner")
    locker: Locker
    locked_at: Optional[datetime] = None
    expires_at: datetime = Field(..., title="Lock Expiry")
    session_id: Optional[str] = None
    time_remaining: int = Field(..., title="Minutes Remaining", ge=0)


class ValidationResult(BaseModel):
    valid: bool
    errors: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_errors(cls, errors: dict[str, str]) -> "ValidationResult":
        return cls(valid=not errors, errors=errors)


class TranslationStatusEntry(BaseModel):
    id: int
    uuid: str
    language: str
    completion_percentage: int = Field(..., ge=0, le=100)
    last_updated: Optional[datetime] = None
    needs_sync: bool = False
    word_count: int = 0
    is_source: bool = False


class NodeCreate(BaseModel):
    name: str = Field(..., min_length=1, title="Node Name")
    slug: Optional[str] = Field(None, title="Slug", description="Generated from the name when omitted.")
    parent_id: Optional[int] = Field(None, title="Parent ID")
    content: dict[str, Any] = Field(default_factory=dict, title="Content")
    meta_data: dict[str, Any] = Field(default_factory=dict, title="Metadata")
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    language: Optional[str] = Field(None, title="Language", description="Defaults to the space language.")
    is_folder: bool = False
    is_startpage: bool = False
    sort_order: int = 0


class NodeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    parent_id: Optional[int] = None
    content: Optional[dict[str, Any]] = None
    meta_data: Optional[dict[str, Any]] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    is_folder: Optional[bool] = None
    is_startpage: Optional[bool] = None
    sort_order: Optional[int] = None


class ComponentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    technical_name: Optional[str] = Field(None, description="Generated from the name when omitted.")
    display_name: Optional[str] = None
    description: Optional[str] = None
    schema_: list[dict[str, Any]] = Field(default_factory=list, alias="schema")
    is_nestable: bool = True
    is_root: bool = False

    model_config = ConfigDict(populate_by_name=True)


class ComponentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    display_name: Optional[str] = None
    description: Optional[str] = None
    schema_: Optional[list[dict[str, Any]]] = Field(None, alias="schema")
    status: Optional[str] = None
    is_nestable: Optional[bool] = None
    is_root: Optional[bool] = None

    model_config = ConfigDict(populate_by_name=True)
