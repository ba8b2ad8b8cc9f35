"""
Utility script to generate and write the OpenAPI schema for the FastAPI app.

This script imports the FastAPI application instance and serializes its OpenAPI
schema to the interfaces/openapi.json file so that API clients and documentation
tools can consume a stable schema without running the server.

Usage:
    python -m countdown_api.generate_openapi
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional

from .main import app, openapi_tags


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Ensure the OpenAPI schema carries the tag metadata declared in main, without
    overriding tags that are already present.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


# PUBLIC_INTERFACE
def build_openapi_schema() -> Dict[str, Any]:
    """Return the app's OpenAPI schema with tag metadata filled in."""
    schema = app.openapi()
    _ensure_tags(schema)
    return schema


def _default_output_path() -> str:
    # <countdown_backend>/interfaces/openapi.json
    package_dir = os.path.dirname(os.path.abspath(__file__))
    container_root = os.path.dirname(os.path.dirname(package_dir))
    return os.path.join(container_root, "interfaces", "openapi.json")


# PUBLIC_INTERFACE
def generate_openapi(out_path: Optional[str] = None) -> str:
    """Write the OpenAPI schema file and return its path."""
    out_path = out_path or _default_output_path()
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(build_openapi_schema(), f, indent=2, ensure_ascii=False)
    return out_path


def main() -> None:
    print(f"Wrote OpenAPI schema to: {generate_openapi()}")


if __name__ == "__main__":
    main()
