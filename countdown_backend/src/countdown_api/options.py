from __future__ import annotations

from typing import Dict, List

Option = Dict[str, str]

TIMEZONE_OPTIONS: List[Option] = [
    {"value": "UTC", "label": "UTC"},
    {"value": "America/New_York", "label": "Eastern Time (US)"},
    {"value": "America/Chicago", "label": "Central Time (US)"},
    {"value": "America/Denver", "label": "Mountain Time (US)"},
    {"value": "America/Los_Angeles", "label": "Pacific Time (US)"},
    {"value": "Europe/London", "label": "London"},
    {"value": "Europe/Paris", "label": "Paris"},
    {"value": "Europe/Berlin", "label": "Berlin"},
    {"value": "Asia/Tokyo", "label": "Tokyo"},
    {"value": "Asia/Shanghai", "label": "Shanghai"},
    {"value": "Asia/Hong_Kong", "label": "Hong Kong"},
    {"value": "Australia/Sydney", "label": "Sydney"},
]

FONT_OPTIONS: List[Option] = [
    {"value": "Arial, sans-serif", "label": "Arial"},
    {"value": "Georgia, serif", "label": "Georgia"},
    {"value": "Times New Roman, serif", "label": "Times New Roman"},
    {"value": "Helvetica, sans-serif", "label": "Helvetica"},
    {"value": "Verdana, sans-serif", "label": "Verdana"},
    {"value": "Courier New, monospace", "label": "Courier New"},
    {"value": "Impact, sans-serif", "label": "Impact"},
    {"value": "Comic Sans MS, cursive", "label": "Comic Sans MS"},
]

FONT_SIZE_OPTIONS: List[Option] = [
    {"value": "14px", "label": "Small (14px)"},
    {"value": "18px", "label": "Medium (18px)"},
    {"value": "22px", "label": "Large (22px)"},
    {"value": "28px", "label": "Extra Large (28px)"},
]
