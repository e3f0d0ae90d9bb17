"""
Pydantic schemas for productions and their audit report.
"""
import re
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class ProductionCreate(BaseModel):
    name: str
    bates_prefix: str
    bates_start_number: int = Field(1, ge=1)
    matter_id: Optional[str] = None
    source_folder_id: Optional[str] = None
    include_subfolders: bool = True

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Production name must not be empty")
        return v.strip()

    @field_validator("bates_prefix")
    @classmethod
    def prefix_has_alphanumerics(cls, v: str) -> str:
        if not re.search(r"[A-Za-z0-9]", v or ""):
            raise ValueError("bates_prefix must contain at least one letter or digit")
        return v.strip()


class ProductionOut(BaseModel):
    id: str
    name: str
    matter_id: Optional[str] = None
    bates_prefix: str
    bates_start_number: int
    source_folder_id: Optional[str] = None
    include_subfolders: bool = True
    status: str
    output_storage_path: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    document_count: int = 0
    page_count: int = 0

    class Config:
        from_attributes = True


class ProductionStartResponse(BaseModel):
    id: str
    status: str
    detail: str


class AuditReportEntry(BaseModel):
    document_id: str
    bates_begin: str
    bates_end: str
    page_count: int
    is_placeholder: bool
    native_filename: Optional[str] = None
    md5_hash: Optional[str] = None
    sha1_hash: Optional[str] = None
    original_filename: Optional[str] = None


class AuditReportHeader(BaseModel):
    id: str
    name: str
    matter_id: Optional[str] = None
    bates_prefix: str
    bates_start_number: int
    status: str
    output_storage_path: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class AuditReport(BaseModel):
    production: AuditReportHeader
    documents: List[AuditReportEntry] = []


class ProductionDownload(BaseModel):
    dat_url: str
    opt_url: str
    output_storage_path: str
