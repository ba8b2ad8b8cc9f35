from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, TypedDict


# PUBLIC_INTERFACE
class CountType(str, Enum):
    """Selects which time-remaining algorithm applies to a countdown."""

    NATURAL = "natural"
    WORKING = "working"


# PUBLIC_INTERFACE
class WorkingHoursEntity(TypedDict):
    """
    Daily working window of a working-time countdown.

    Fields:
    - start: "HH:MM" local time the window opens (inclusive)
    - end: "HH:MM" local time the window closes (exclusive)
    - exclude_weekends: skip Saturdays and Sundays entirely
    """

    start: str
    end: str
    exclude_weekends: bool


class CustomizationEntity(TypedDict):
    background_color: str
    text_color: str
    title_color: str
    font_family: str
    font_size: str


class BackgroundImageEntity(TypedDict):
    id: str
    data: str
    name: str


# PUBLIC_INTERFACE
class CountdownEntity(TypedDict):
    """
    A countdown record as held by every storage backend.

    Fields:
    - id: uuid4 string, also the shareable link token
    - title: display title (1..200 chars, trimmed on input via schemas)
    - target_date: aware UTC instant the countdown runs to
    - timezone: IANA zone used for display and working-hour boundaries
    - location: optional display string
    - count_type: "natural" or "working"
    - working_hours: present iff count_type is "working"
    - customization: inert display styling
    - background_images: ordered images rotated by the presentation layer
    - image_interval: seconds between image rotations
    - created_at / updated_at: aware UTC timestamps set by the store
    """

    id: str
    title: str
    target_date: datetime
    timezone: str
    location: Optional[str]
    count_type: str
    working_hours: Optional[WorkingHoursEntity]
    customization: CustomizationEntity
    background_images: List[BackgroundImageEntity]
    image_interval: int
    created_at: datetime
    updated_at: datetime


DEFAULT_WORKING_HOURS: WorkingHoursEntity = {
    "start": "09:00",
    "end": "17:00",
    "exclude_weekends": True,
}

DEFAULT_CUSTOMIZATION: CustomizationEntity = {
    "background_color": "#ffffff",
    "text_color": "#1a1a1a",
    "title_color": "#000000",
    "font_family": "Arial, sans-serif",
    "font_size": "18px",
}
