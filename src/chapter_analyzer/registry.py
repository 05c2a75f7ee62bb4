from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Collection, Iterable, List, Sequence

import yaml

from .errors import RegistryUnavailableError
from .models import EntityKind, NamedEntity, TrackedName

logger = logging.getLogger(__name__)


class NameRegistry(ABC):
    """
    Per-author store of names seen in earlier chapters.

    Each registry carries its own lock; callers hold it across the
    read-check-update sequence so chapters of the same author serialize.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()

    @abstractmethod
    def load(self) -> List[TrackedName]:
        """Return a snapshot of the tracked names."""
        raise NotImplementedError

    @abstractmethod
    def save(self, names: Sequence[TrackedName]) -> None:
        """Replace the stored names with ``names``."""
        raise NotImplementedError


class InMemoryNameRegistry(NameRegistry):
    def __init__(self, names: Iterable[TrackedName] | None = None) -> None:
        super().__init__()
        self._names: List[TrackedName] = _copy_names(names or [])

    def load(self) -> List[TrackedName]:
        return _copy_names(self._names)

    def save(self, names: Sequence[TrackedName]) -> None:
        self._names = _copy_names(names)


class YamlNameRegistry(NameRegistry):
    """Registry persisted as a YAML document with a top-level ``names`` list."""

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)

    def load(self) -> List[TrackedName]:
        if not self.path.exists():
            return []
        try:
            parsed = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
            entries = parsed.get("names", []) if isinstance(parsed, dict) else parsed
            if not isinstance(entries, list):
                raise ValueError("Registry YAML must contain a list of names.")
            return [_name_from_dict(entry) for entry in entries]
        except (OSError, yaml.YAMLError, ValueError, TypeError, KeyError) as exc:
            raise RegistryUnavailableError(
                f"Cannot read name registry {self.path}: {exc}"
            ) from exc

    def save(self, names: Sequence[TrackedName]) -> None:
        payload = {"names": [_name_to_dict(name) for name in names]}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                yaml.safe_dump(payload, sort_keys=False, allow_unicode=True),
                encoding="utf-8",
            )
        except OSError as exc:
            raise RegistryUnavailableError(
                f"Cannot write name registry {self.path}: {exc}"
            ) from exc


@dataclass(slots=True)
class RegistryPlan:
    """Outcome of merging one chapter's names into the tracked set."""

    new_names: List[TrackedName] = field(default_factory=list)
    merged: List[TrackedName] = field(default_factory=list)
    changed: bool = False


def plan_registry_updates(
    names: Iterable[NamedEntity],
    tracked: Sequence[TrackedName],
    chapter_number: int,
    excluded: Collection[str] = (),
) -> RegistryPlan:
    """
    Work out which names to add to the registry after a chapter.

    Unknown names become new entries first seen in ``chapter_number``. A known
    name written with different casing is recorded as a variant. Names in
    ``excluded`` (typically the ones just flagged as likely misspellings) are
    left out so a typo never becomes canonical.
    """
    merged = _copy_names(tracked)
    plan = RegistryPlan(merged=merged)
    for entity in names:
        if entity.name in excluded:
            continue
        existing = next((entry for entry in merged if entry.matches(entity.name)), None)
        if existing is None:
            entry = TrackedName(
                canonical_name=entity.name,
                kind=entity.kind,
                first_seen_chapter=chapter_number,
                variants=[entity.name],
            )
            merged.append(entry)
            plan.new_names.append(entry)
            plan.changed = True
        elif entity.name not in existing.variants:
            existing.variants.append(entity.name)
            plan.changed = True
    return plan


def _copy_names(names: Iterable[TrackedName]) -> List[TrackedName]:
    return [replace(name, variants=list(name.variants)) for name in names]


def _name_to_dict(name: TrackedName) -> dict[str, Any]:
    return {
        "canonical_name": name.canonical_name,
        "kind": name.kind.value,
        "first_seen_chapter": name.first_seen_chapter,
        "variants": list(name.variants),
    }


def _name_from_dict(data: Any) -> TrackedName:
    if not isinstance(data, dict):
        raise ValueError(f"Registry entry must be a mapping, got {data!r}")
    return TrackedName(
        canonical_name=str(data["canonical_name"]),
        kind=EntityKind(data.get("kind", EntityKind.OTHER.value)),
        first_seen_chapter=int(data.get("first_seen_chapter", 1)),
        variants=[str(variant) for variant in data.get("variants", [])],
    )
