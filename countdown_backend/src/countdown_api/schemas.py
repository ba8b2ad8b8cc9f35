from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .models import DEFAULT_CUSTOMIZATION, DEFAULT_WORKING_HOURS, CountType
from .time_engine import parse_clock_time
from .utils import new_id, utc_now

# Fields an update may explicitly reset to null.
NULLABLE_FIELDS = {"location", "working_hours"}


def _validate_timezone(value: str) -> str:
    """
    Ensure value names a known IANA timezone.
    """
    name = value.strip()
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise ValueError(f"Unknown timezone '{value}'. Use an IANA name such as 'Europe/Paris'.") from e
    return name


def _validate_title(value: str) -> str:
    s = value.strip()
    if not (1 <= len(s) <= 200):
        raise ValueError("title length must be between 1 and 200 characters")
    return s


def _is_naive(value: datetime) -> bool:
    return value.tzinfo is None or value.tzinfo.utcoffset(value) is None


def _resolve_target(value: datetime, timezone_name: Optional[str]) -> datetime:
    """
    Turn an incoming target date into an aware UTC instant.
    - Naive values are wall-clock times in the countdown's timezone (UTC if none given).
    - The resulting instant must lie in the future.
    """
    if _is_naive(value):
        value = value.replace(tzinfo=ZoneInfo(timezone_name or "UTC"))
    resolved = value.astimezone(timezone.utc)
    if resolved <= utc_now():
        raise ValueError("target_date must be in the future")
    return resolved


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )


# PUBLIC_INTERFACE
class WorkingHours(_CamelModel):
    """
    Daily working window. start is inclusive, end exclusive; start < end is not enforced.
    """

    start: str = Field(default=DEFAULT_WORKING_HOURS["start"], description="Window start, HH:MM local time")
    end: str = Field(default=DEFAULT_WORKING_HOURS["end"], description="Window end, HH:MM local time")
    exclude_weekends: bool = Field(
        default=DEFAULT_WORKING_HOURS["exclude_weekends"], description="Skip Saturdays and Sundays"
    )

    @field_validator("start", "end")
    @classmethod
    def validate_clock_time(cls, v: str) -> str:
        minutes = parse_clock_time(v)
        if minutes is None or minutes > 24 * 60:
            raise ValueError("working hours must use the HH:MM format (00:00 to 24:00)")
        return v.strip()


# PUBLIC_INTERFACE
class Customization(_CamelModel):
    """Display styling; stored and returned untouched."""

    background_color: str = Field(default=DEFAULT_CUSTOMIZATION["background_color"])
    text_color: str = Field(default=DEFAULT_CUSTOMIZATION["text_color"])
    title_color: str = Field(default=DEFAULT_CUSTOMIZATION["title_color"])
    font_family: str = Field(default=DEFAULT_CUSTOMIZATION["font_family"])
    font_size: str = Field(default=DEFAULT_CUSTOMIZATION["font_size"])


# PUBLIC_INTERFACE
class BackgroundImage(_CamelModel):
    """A background image as an encoded data URL."""

    id: str = Field(default_factory=new_id, description="Image identifier")
    data: str = Field(..., min_length=1, description="Encoded image data, e.g. a data: URL")
    name: str = Field(default="", description="Original file name")


# PUBLIC_INTERFACE
class CountdownCreate(_CamelModel):
    """
    Schema for creating a new countdown.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Product launch",
                "targetDate": "2030-03-01T09:00:00",
                "timezone": "Europe/Paris",
                "location": "Paris HQ",
                "countType": "working",
                "workingHours": {"start": "09:00", "end": "17:00", "excludeWeekends": True},
                "customization": {"backgroundColor": "#ffffff", "fontSize": "22px"},
                "imageInterval": 5,
            }
        }
    )

    title: str = Field(..., description="Display title", min_length=1, max_length=200)
    target_date: datetime = Field(
        ...,
        description="Instant the countdown runs to. Naive values are read in the countdown's timezone",
    )
    timezone: str = Field(default="UTC", description="IANA timezone for display and working hours")
    location: Optional[str] = Field(default=None, description="Optional display location")
    count_type: CountType = Field(default=CountType.NATURAL, description="natural or working time")
    working_hours: Optional[WorkingHours] = Field(
        default=None, description="Working window; only kept for working-time countdowns"
    )
    customization: Customization = Field(default_factory=Customization)
    background_images: List[BackgroundImage] = Field(default_factory=list)
    image_interval: int = Field(default=5, ge=1, description="Seconds between background rotations")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _validate_title(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        return _validate_timezone(v)

    @model_validator(mode="after")
    def normalize(self) -> "CountdownCreate":
        """
        Resolve target_date to UTC and keep working_hours present only for working countdowns.
        """
        self.target_date = _resolve_target(self.target_date, self.timezone)
        if self.count_type == CountType.WORKING.value:
            if self.working_hours is None:
                self.working_hours = WorkingHours()
        else:
            self.working_hours = None
        return self

    def to_fields(self) -> Dict[str, Any]:
        """Return the record fields (snake_case, plain values) for a store."""
        return self.model_dump()


# PUBLIC_INTERFACE
class CountdownUpdate(_CamelModel):
    """
    Schema for updating an existing countdown.
    All fields are optional; only provided fields will be updated.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Product launch (moved)",
                "targetDate": "2030-03-08T09:00:00Z",
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Display title", min_length=1, max_length=200)
    target_date: Optional[datetime] = Field(default=None, description="Instant the countdown runs to")
    timezone: Optional[str] = Field(default=None, description="IANA timezone")
    location: Optional[str] = Field(default=None, description="Display location; null clears it")
    count_type: Optional[CountType] = Field(default=None, description="natural or working time")
    working_hours: Optional[WorkingHours] = Field(default=None, description="Working window; null clears it")
    customization: Optional[Customization] = Field(default=None)
    background_images: Optional[List[BackgroundImage]] = Field(default=None)
    image_interval: Optional[int] = Field(default=None, ge=1)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        if v is None:
            return v
        return _validate_title(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _validate_timezone(v)

    @model_validator(mode="after")
    def normalize(self) -> "CountdownUpdate":
        """
        Resolve target_date now when it carries an offset or the update names a
        timezone. A bare wall-clock time without one waits for resolve_target.
        """
        if self.target_date is not None and (self.timezone is not None or not _is_naive(self.target_date)):
            self.target_date = _resolve_target(self.target_date, self.timezone)
        return self

    def resolve_target(self, stored_timezone: str) -> None:
        """
        Read a naive target_date as wall-clock time in the countdown's stored timezone.

        Raises:
            ValueError: if the resolved instant is not in the future.
        """
        if self.target_date is not None and _is_naive(self.target_date):
            self.target_date = _resolve_target(self.target_date, stored_timezone)

    def changes(self) -> Dict[str, Any]:
        """
        Return only the fields the caller supplied. An explicit null is kept for
        clearable fields and ignored elsewhere.
        """
        data = self.model_dump(exclude_unset=True)
        return {k: v for k, v in data.items() if v is not None or k in NULLABLE_FIELDS}


# PUBLIC_INTERFACE
class CountdownOut(_CamelModel):
    """
    Schema returned by the API for a countdown.
    """

    id: str = Field(..., description="Unique identifier, also used in shareable links")
    title: str
    target_date: datetime
    timezone: str
    location: Optional[str] = None
    count_type: CountType
    working_hours: Optional[WorkingHours] = None
    customization: Customization
    background_images: List[BackgroundImage] = Field(default_factory=list)
    image_interval: int
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    updated_at: datetime = Field(..., description="Last update timestamp (UTC)")


class CountdownList(_CamelModel):
    countdowns: List[CountdownOut] = Field(..., description="Countdowns, newest first")


# PUBLIC_INTERFACE
class TimeRemainingOut(_CamelModel):
    """
    Remaining time of a countdown at a given instant.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "days": 1,
                "hours": 1,
                "minutes": 1,
                "seconds": 1,
                "isExpired": False,
                "display": "1d 1h 1m 1s",
            }
        }
    )

    days: int = Field(..., ge=0)
    hours: int = Field(..., ge=0)
    minutes: int = Field(..., ge=0)
    seconds: int = Field(..., ge=0)
    is_expired: bool
    display: str = Field(..., description="Human readable rendering, e.g. '2d 3h'")


class OptionOut(BaseModel):
    value: str
    label: str


class OptionsOut(_CamelModel):
    timezones: List[OptionOut]
    fonts: List[OptionOut]
    font_sizes: List[OptionOut]
