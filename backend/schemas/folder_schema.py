"""
Pydantic schemas for folders and folder membership.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, field_validator


class FolderCreate(BaseModel):
    name: str
    matter_id: Optional[str] = None
    parent_id: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Folder name must not be empty")
        return v.strip()


class FolderRename(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Folder name must not be empty")
        return v.strip()


class FolderOut(BaseModel):
    id: str
    name: str
    matter_id: Optional[str] = None
    parent_id: Optional[str] = None
    document_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FolderTreeNode(FolderOut):
    children: List["FolderTreeNode"] = []


FolderTreeNode.model_rebuild()


class FolderDocumentsRequest(BaseModel):
    document_ids: List[str]

    @field_validator("document_ids")
    @classmethod
    def not_empty(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("document_ids must not be empty")
        return list(dict.fromkeys(v))
