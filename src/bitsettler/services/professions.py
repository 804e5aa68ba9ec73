"""Profession catalog loaded from ``data/professions.yaml``."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "professions.yaml"


@dataclass(frozen=True)
class Profession:
    """One selectable profession. ``name`` is the label clients send."""

    id: str
    name: str
    description: str = ""


def load_professions(path: Path = CATALOG_PATH) -> tuple[Profession, ...]:
    """Parse and validate a profession catalog file.

    Raises:
        FileNotFoundError: If the catalog file does not exist.
        ValueError: On a malformed catalog or duplicate ids/names.
    """
    if not path.exists():
        raise FileNotFoundError(f"Profession catalog not found: {path}")

    with path.open() as fh:
        raw = yaml.safe_load(fh)

    if not isinstance(raw, dict) or not isinstance(raw.get("professions"), list):
        raise ValueError(f"{path.name}: missing required list 'professions'.")

    professions = []
    seen: set[str] = set()
    for entry in raw["professions"]:
        if not isinstance(entry, dict) or not entry.get("id") or not entry.get("name"):
            raise ValueError(f"{path.name}: every profession needs an 'id' and a 'name'.")
        profession = Profession(
            id=str(entry["id"]),
            name=str(entry["name"]),
            description=str(entry.get("description") or ""),
        )
        keys = {profession.id.lower(), profession.name.lower()}
        if keys & seen:
            raise ValueError(f"{path.name}: duplicate profession {profession.id!r}.")
        seen |= keys
        professions.append(profession)
    return tuple(professions)


@lru_cache(maxsize=1)
def get_catalog() -> tuple[Profession, ...]:
    return load_professions()


def profession_names() -> list[str]:
    return [profession.name for profession in get_catalog()]


def resolve_profession(label: str | None) -> str | None:
    """Map an id or name (any case) to the catalog name, or ``None`` if unknown."""
    if not label:
        return None
    wanted = label.strip().lower()
    for profession in get_catalog():
        if wanted in (profession.id.lower(), profession.name.lower()):
            return profession.name
    return None
