"""Load custom field names from YAML (with fallbacks)."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from .config import DEFAULT_FIELD_NAMES, FieldTag

logger = logging.getLogger(__name__)

_CACHE: dict[FieldTag, str] | None = None


def load_field_names(base_path: str | Path | None = None, *, reload: bool = False) -> dict[FieldTag, str]:
    global _CACHE
    if _CACHE is not None and not reload:
        return _CACHE
    base = Path(base_path or Path(__file__).resolve().parent.parent)
    yaml_path = base / "fields.yaml"
    names = dict(DEFAULT_FIELD_NAMES)
    if not yaml_path.exists():
        _CACHE = names
        return _CACHE
    try:
        data = yaml.safe_load(yaml_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Ignoring unreadable %s: %s", yaml_path, exc)
        _CACHE = names
        return _CACHE
    overrides = data.get("fields") if isinstance(data, dict) else None
    if isinstance(overrides, dict):
        for key, value in overrides.items():
            try:
                tag = FieldTag(str(key).lower())
            except ValueError:
                logger.warning("Unknown field tag %r in %s", key, yaml_path)
                continue
            if isinstance(value, str) and value.strip():
                names[tag] = value.strip()
    _CACHE = names
    return _CACHE


def field_name(tag: FieldTag) -> str:
    return load_field_names()[tag]


def tag_for_name(name: str | None) -> FieldTag | None:
    if not name:
        return None
    for tag, label in load_field_names().items():
        if label == name:
            return tag
    return None
