"""Core data models for wp-advisories-upgrader."""

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .errors import ManifestError

CONFLICT_SECTION = "conflict"


class SoftwareType(str, Enum):
    """Kind of software a vulnerability record refers to."""

    PLUGIN = "plugin"
    THEME = "theme"
    CORE = "core"
    UNSUPPORTED = "unsupported"

    @classmethod
    def parse(cls, value: Any) -> "SoftwareType":
        """Map a raw feed type string to a member, falling back to UNSUPPORTED."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.UNSUPPORTED


@dataclass(frozen=True)
class ComposerManifest:
    """An immutable composer.json document split into its conflict map and everything else.

    ``other_fields`` keeps every unrelated top-level member in its original
    order; ``conflict_position`` remembers where the ``conflict`` member sat so
    that re-serialization does not move it.
    """

    conflict: dict[str, str] = field(default_factory=dict)
    other_fields: dict[str, Any] = field(default_factory=dict)
    conflict_position: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ComposerManifest":
        """Split a decoded composer.json object.

        Args:
            data: Decoded JSON object

        Returns:
            Manifest value

        Raises:
            ManifestError: If the document or its conflict member is not an object
        """
        if not isinstance(data, dict):
            raise ManifestError("composer.json must contain a JSON object")

        conflict_position = None
        conflict: dict[str, str] = {}
        if CONFLICT_SECTION in data:
            conflict_position = list(data).index(CONFLICT_SECTION)
            raw_conflict = data[CONFLICT_SECTION]
            # An empty PHP array is serialized as [] rather than {}
            if raw_conflict == []:
                raw_conflict = {}
            if not isinstance(raw_conflict, dict):
                raise ManifestError("composer.json 'conflict' member must be an object")
            for package, constraint in raw_conflict.items():
                if not isinstance(constraint, str):
                    raise ManifestError(f"Conflict constraint for {package} must be a string")
                conflict[package] = constraint

        other_fields = {key: value for key, value in data.items() if key != CONFLICT_SECTION}
        return cls(conflict=conflict, other_fields=other_fields, conflict_position=conflict_position)

    @classmethod
    def from_json(cls, content: str | bytes) -> "ComposerManifest":
        """Decode composer.json content."""
        try:
            data = json.loads(content)
        except ValueError as e:
            raise ManifestError(f"composer.json is not valid JSON: {e}") from e
        return cls.from_dict(data)

    def with_conflict(self, conflict: dict[str, str]) -> "ComposerManifest":
        """Return a copy carrying a new conflict map."""
        return replace(self, conflict=dict(conflict))

    def to_dict(self) -> dict[str, Any]:
        items = list(self.other_fields.items())
        if self.conflict_position is not None:
            items.insert(self.conflict_position, (CONFLICT_SECTION, dict(self.conflict)))
        elif self.conflict:
            items.append((CONFLICT_SECTION, dict(self.conflict)))
        return dict(items)

    def to_json(self) -> str:
        """Pretty-printed JSON with forward slashes left unescaped."""
        return json.dumps(self.to_dict(), indent=4) + "\n"


@dataclass(frozen=True)
class MergeOutcome:
    """Result of folding one or more constraints into a manifest."""

    manifest: ComposerManifest
    last_constraint: str = ""
    changed: bool = False


class EntryState(str, Enum):
    """Lifecycle of a single feed entry within one run."""

    PENDING = "pending"
    NOOP = "noop"
    CHANGED = "changed"
    BRANCH_CREATED = "branch_created"
    FILE_UPDATED = "file_updated"
    PULL_REQUEST_CREATED = "pull_request_created"
    DONE = "done"
    FAILED = "failed"


@dataclass
class EntryReport:
    """What happened to one feed entry."""

    entry_id: str
    state: EntryState = EntryState.PENDING
    constraint: str = ""
    title: str = ""
    error: str | None = None


@dataclass
class RunReport:
    """Summary of a complete run."""

    entries: list[EntryReport] = field(default_factory=list)

    def count(self, state: EntryState) -> int:
        return sum(1 for report in self.entries if report.state == state)

    @property
    def published(self) -> int:
        return self.count(EntryState.DONE)

    @property
    def unchanged(self) -> int:
        return self.count(EntryState.NOOP)

    @property
    def failed(self) -> int:
        return self.count(EntryState.FAILED)
