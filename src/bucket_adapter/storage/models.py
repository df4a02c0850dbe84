from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class ObjectDescriptor(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True, frozen=True)
    name: str = Field(..., description="S3 object key name.")
    content_length: int = Field(..., alias="contentLength", description="Length of the S3 object in bytes.")

    @classmethod
    def from_list_entry(cls, item: dict) -> ObjectDescriptor:
        return cls(name=item["Key"], content_length=item.get("Size", 0))


class UploadResult(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)
    bucket: str = Field(..., description="Bucket the object was written to.")
    key: str = Field(..., description="Target S3 object key name.")
    etag: Optional[str] = Field(None, alias="ETag", description="Entity tag reported by S3 for the stored object.")
    content_length: Optional[int] = Field(None, alias="ContentLength", description="Stored object size in bytes.")
    version_id: Optional[str] = Field(None, alias="VersionId", description="Version id when bucket versioning is on.")
