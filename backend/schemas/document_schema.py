"""
Pydantic schemas for document-related request / response models.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class DocumentOut(BaseModel):
    id: str
    matter_id: Optional[str] = None
    parent_id: Optional[str] = None
    family_id: str
    family_index: int = 0
    filename: str
    original_filename: Optional[str] = None
    mime_type: Optional[str] = None
    file_type: Optional[str] = None
    custodian: Optional[str] = None
    size: int = 0
    md5_hash: Optional[str] = None
    sha1_hash: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="doc_metadata")
    extracted_text_path: Optional[str] = None
    processing_status: str
    processing_error: Optional[str] = None
    processed_at: Optional[datetime] = None
    relevance_flag: Optional[bool] = None
    privilege_flag: Optional[bool] = None
    issue_tags: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class DocumentDetail(DocumentOut):
    extracted_text: Optional[str] = None


class FamilyOut(BaseModel):
    root: DocumentOut
    children: List[DocumentOut] = []


class DocumentListResponse(BaseModel):
    items: List[DocumentOut] = []
    families: Optional[List[FamilyOut]] = None
    total: int
    page: int
    page_size: int


class DocumentUploadResponse(BaseModel):
    id: str
    filename: str
    family_id: str
    md5_hash: str
    sha1_hash: str
    size: int
    processing_status: str


class DownloadResponse(BaseModel):
    download_url: str
    filename: str
