"""Data models for Picker API resources."""

from dataclasses import dataclass, field
from typing import Any, Dict

SESSION_PREFIX = "sessions/"


@dataclass
class PickerSession:
    """Picking session returned by the Picker API."""
    name: str
    picker_uri: str
    media_items_set: bool = False
    id: str = ""
    expire_time: str = ""

    @property
    def session_id(self) -> str:
        """Session id without the ``sessions/`` resource prefix."""
        return strip_session_prefix(self.name)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PickerSession":
        session_id = data.get("id", "")
        name = data.get("name", "")
        if not name and session_id:
            name = f"{SESSION_PREFIX}{session_id}"
        return cls(
            name=name,
            picker_uri=data.get("pickerUri", ""),
            media_items_set=bool(data.get("mediaItemsSet", False)),
            id=session_id,
            expire_time=data.get("expireTime", ""),
        )


@dataclass
class PhotoMetadata:
    """Exposure settings of a photo."""
    focal_length: float = 0.0
    aperture_f_number: float = 0.0
    iso_equivalent: int = 0
    exposure_time: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhotoMetadata":
        return cls(
            focal_length=float(data.get("focalLength", 0) or 0),
            aperture_f_number=float(data.get("apertureFNumber", 0) or 0),
            iso_equivalent=int(data.get("isoEquivalent", 0) or 0),
            exposure_time=data.get("exposureTime", ""),
        )


@dataclass
class MediaFileMetadata:
    """Dimensions and camera information of a media file."""
    width: int = 0
    height: int = 0
    camera_make: str = ""
    camera_model: str = ""
    photo_metadata: PhotoMetadata = field(default_factory=PhotoMetadata)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaFileMetadata":
        return cls(
            width=int(data.get("width", 0) or 0),
            height=int(data.get("height", 0) or 0),
            camera_make=data.get("cameraMake", ""),
            camera_model=data.get("cameraModel", ""),
            photo_metadata=PhotoMetadata.from_dict(data.get("photoMetadata") or {}),
        )


@dataclass
class MediaFile:
    """Downloadable file behind a picked media item."""
    base_url: str
    mime_type: str = ""
    filename: str = ""
    metadata: MediaFileMetadata = field(default_factory=MediaFileMetadata)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaFile":
        return cls(
            base_url=data.get("baseUrl", ""),
            mime_type=data.get("mimeType", ""),
            filename=data.get("filename", ""),
            metadata=MediaFileMetadata.from_dict(data.get("mediaFileMetadata") or {}),
        )


@dataclass
class MediaItem:
    """Media item the user picked."""
    id: str
    create_time: str = ""
    type: str = ""
    media_file: MediaFile = field(default_factory=lambda: MediaFile(base_url=""))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaItem":
        return cls(
            id=data.get("id", ""),
            create_time=data.get("createTime", ""),
            type=data.get("type", ""),
            media_file=MediaFile.from_dict(data.get("mediaFile") or {}),
        )


def strip_session_prefix(name: str) -> str:
    if name.startswith(SESSION_PREFIX):
        return name[len(SESSION_PREFIX):]
    return name
