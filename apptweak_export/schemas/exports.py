"""
Pydantic schemas for export API
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, NamedTuple, Optional, Union


class ArchiveEntry(NamedTuple):
    """One file inside the export archive"""

    path: str
    content: Union[bytes, str]
    diagnostic: bool = False


class SelectiveDownloadRequest(BaseModel):
    """Request to export selected metadata elements as a ZIP archive"""

    model_config = ConfigDict(populate_by_name=True)

    apps: list[str] = Field(default_factory=list, description="App identifiers to export")
    country: str = Field(default="us")
    device: str = Field(default="iphone")
    language: str = Field(default="en")
    selected_elements: list[str] = Field(
        default_factory=list,
        alias="selectedElements",
        description="Element kinds: title, subtitle, description, icon, screenshots",
    )
    all_in_one: bool = Field(
        default=False,
        alias="allInOne",
        description="Group archive entries by element instead of by app",
    )
    existing_metadata: Optional[dict[str, Any]] = Field(
        default=None,
        alias="existingMetadata",
        description="Pre-fetched metadata keyed by app id, skips the upstream call",
    )


class MetadataDownloadRequest(BaseModel):
    """Request to bundle raw metadata for several apps into one JSON file"""

    apps: list[str] = Field(default_factory=list)
    country: str = Field(default="us")
    device: str = Field(default="iphone")
    language: str = Field(default="en")


class ExportInfo(BaseModel):
    exported_at: str
    country: str
    device: str
    language: str
    total_apps: int
    successful_apps: int
    failed_apps: int

