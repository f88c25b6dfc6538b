"""
Athlete portrait URLs.

The `photo` column holds either a full URL (often a Google Drive share
link) or an object key in portrait storage. A missing or broken portrait
never fails a response: it falls back to a placeholder avatar built from
the athlete's identity.
"""

import re
from typing import Optional
from urllib.parse import quote

from .models import Athlete

DEFAULT_PLACEHOLDER_TEMPLATE = (
    "https://ui-avatars.com/api/?name={name}&background=cccccc&color=ffffff&size=40"
)

_DRIVE_FILE_ID = re.compile(r"/d/([a-zA-Z0-9_-]+)")


def is_external_url(photo: str) -> bool:
    return photo.startswith(("http://", "https://"))


def normalize_photo_url(photo: Optional[str]) -> Optional[str]:
    """
    Clean up a stored photo value.

    Drive share links (".../file/d/<id>/view") are rewritten to the
    direct-download form so they can be used as an image source.
    """
    if not photo or not photo.strip():
        return None
    photo = photo.strip()
    if "drive.google.com" in photo:
        match = _DRIVE_FILE_ID.search(photo)
        if match:
            return f"https://drive.google.com/uc?id={match.group(1)}"
    return photo


def placeholder_url(athlete: Athlete, template: str = DEFAULT_PLACEHOLDER_TEMPLATE) -> str:
    """Placeholder avatar for an athlete, keyed by name (fincode if unnamed)."""
    label = athlete.name.strip() or str(athlete.fincode or "Avatar")
    return template.format(name=quote(label))
