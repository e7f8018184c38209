"""Google Photos Picker API session client."""

from .client import PICKER_API_BASE, PickerSessionClient
from .models import MediaFile, MediaFileMetadata, MediaItem, PhotoMetadata, PickerSession

__all__ = [
    "PICKER_API_BASE",
    "PickerSessionClient",
    "PickerSession",
    "MediaItem",
    "MediaFile",
    "MediaFileMetadata",
    "PhotoMetadata",
]
