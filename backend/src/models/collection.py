"""Typed record collection ("object") and record ("item") models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

FieldValue = Union[str, int, float, bool, List[str], None]


class FieldType(str, Enum):
    """Primitive types a field definition can hold."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    URL = "url"
    CHECKBOX = "checkbox"
    SELECT = "select"
    REFERENCE = "reference"


def coerce_field_type(value: Optional[str]) -> FieldType:
    """Map an inferred type name onto FieldType; unknown names degrade to text."""
    if not value:
        return FieldType.TEXT
    try:
        return FieldType(value.strip().lower())
    except ValueError:
        return FieldType.TEXT


class FieldDefinition(BaseModel):
    """One entry of a collection's ordered field schema."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=128)
    type: FieldType = FieldType.TEXT
    options: Optional[List[str]] = Field(default=None, description="Allowed values for select fields")
    required: bool = False
    reference_collection_id: Optional[str] = Field(
        default=None,
        alias="referenceCollectionId",
        description="Target collection for reference fields",
    )


class Collection(BaseModel):
    """A named typed collection with a user-defined field schema."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = Field(..., min_length=1, max_length=256)
    icon: str = ""
    description: Optional[str] = None
    fields: List[FieldDefinition] = Field(default_factory=list)
    available_global: bool = Field(default=False, alias="availableGlobal")
    available_in_workspaces: List[str] = Field(default_factory=list, alias="availableInWorkspaces")
    available_in_projects: List[str] = Field(default_factory=list, alias="availableInProjects")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    def field_ids(self) -> set[str]:
        return {field.id for field in self.fields}


class CollectionCreate(BaseModel):
    """Request payload to create a collection."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=256)
    icon: str = ""
    description: Optional[str] = None
    fields: List[FieldDefinition] = Field(default_factory=list)
    available_global: bool = Field(default=False, alias="availableGlobal")
    available_in_workspaces: List[str] = Field(default_factory=list, alias="availableInWorkspaces")
    available_in_projects: List[str] = Field(default_factory=list, alias="availableInProjects")


class Record(BaseModel):
    """A row of a collection holding field-definition-id -> value."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    collection_id: str = Field(..., alias="collectionId")
    name: str = Field(..., min_length=1)
    workspace_id: Optional[str] = Field(default=None, alias="workspaceId")
    project_id: Optional[str] = Field(default=None, alias="projectId")
    field_values: Dict[str, FieldValue] = Field(default_factory=dict, alias="fieldValues")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    def known_values(self, collection: Collection) -> Dict[str, FieldValue]:
        """Values whose field definition still exists in the collection schema."""
        known = collection.field_ids()
        return {key: value for key, value in self.field_values.items() if key in known}


class RecordCreate(BaseModel):
    """Request payload to create a record."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    workspace_id: Optional[str] = Field(default=None, alias="workspaceId")
    project_id: Optional[str] = Field(default=None, alias="projectId")
    field_values: Dict[str, FieldValue] = Field(default_factory=dict, alias="fieldValues")


__all__ = [
    "FieldValue",
    "FieldType",
    "coerce_field_type",
    "FieldDefinition",
    "Collection",
    "CollectionCreate",
    "Record",
    "RecordCreate",
]
