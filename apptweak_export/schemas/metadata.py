"""
Typed view over AppTweak metadata records
"""
from dataclasses import dataclass, field
from enum import Enum
from pydantic import BaseModel, ConfigDict, ValidationError, ValidatorFunctionWrapHandler, field_validator
from typing import Any, Optional


class ElementKind(str, Enum):
    TITLE = "title"
    SUBTITLE = "subtitle"
    DESCRIPTION = "description"
    ICON = "icon"
    SCREENSHOTS = "screenshots"


class ScreenshotLayout(str, Enum):
    """Shape the upstream used for the screenshots field"""

    FLAT = "array"
    BY_DEVICE = "object"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class ScreenshotItem:
    index: int
    url: Optional[str]
    device_type: Optional[str] = None


@dataclass(frozen=True)
class ScreenshotSet:
    """
    Screenshots normalized from either upstream shape

    FLAT: index is the 1-based position in the list.
    BY_DEVICE: one 1-based counter runs across every device group,
    in the order the groups appear.
    """

    layout: ScreenshotLayout
    items: list[ScreenshotItem] = field(default_factory=list)
    raw_count: int = 0

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["ScreenshotSet"]:
        # Empty scalars ("", 0, false) mean the field is absent; [] and {} do not
        if raw is None or (not raw and not isinstance(raw, (list, dict))):
            return None

        if isinstance(raw, list):
            items = [
                ScreenshotItem(index=position, url=_entry_url(entry))
                for position, entry in enumerate(raw, 1)
            ]
            return cls(layout=ScreenshotLayout.FLAT, items=items, raw_count=len(raw))

        if isinstance(raw, dict):
            items = []
            counter = 1
            raw_count = 0
            for device_type, entries in raw.items():
                if not isinstance(entries, list):
                    raw_count += 1
                    continue
                raw_count += len(entries)
                for entry in entries:
                    items.append(
                        ScreenshotItem(index=counter, url=_entry_url(entry), device_type=device_type)
                    )
                    counter += 1
            return cls(layout=ScreenshotLayout.BY_DEVICE, items=items, raw_count=raw_count)

        # Present but unusable: nothing to download
        return cls(layout=ScreenshotLayout.UNSUPPORTED)

    @property
    def downloadable(self) -> list[ScreenshotItem]:
        return [item for item in self.items if item.url]


def _entry_url(entry: Any) -> Optional[str]:
    # Entries are either a bare URL or an object with a "url" key
    if isinstance(entry, str):
        return entry or None
    if isinstance(entry, dict):
        url = entry.get("url")
        return url if isinstance(url, str) and url else None
    return None


class AppMetadata(BaseModel):
    """Loosely-typed metadata record; every field is optional"""

    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    subtitle: Optional[str] = None
    description: Optional[str] = None
    long_description: Optional[str] = None
    icon: Optional[str] = None
    screenshots: Any = None

    @field_validator("title", "subtitle", "description", "long_description", "icon", mode="wrap")
    @classmethod
    def drop_malformed_text(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> Optional[str]:
        """A wrongly typed field is treated as absent instead of failing the record"""
        try:
            return handler(value)
        except ValidationError:
            return None

    @property
    def description_text(self) -> Optional[str]:
        return self.description or self.long_description or None

    @property
    def screenshot_set(self) -> Optional[ScreenshotSet]:
        return ScreenshotSet.from_raw(self.screenshots)

    def availability(self) -> dict[str, Any]:
        """Presence flags written to the per-app summary"""
        shots = self.screenshot_set
        return {
            "has_screenshots": shots is not None,
            "screenshots_type": shots.layout.value if shots else "none",
            "screenshots_count": shots.raw_count if shots else 0,
            "has_icon": bool(self.icon),
            "has_title": bool(self.title),
            "has_subtitle": bool(self.subtitle),
            "has_description": bool(self.description_text),
        }


def unwrap_existing(record: Any) -> Any:
    """Caller-supplied metadata may be nested under a "metadata" key"""
    if isinstance(record, dict) and record.get("metadata"):
        return record["metadata"]
    return record
