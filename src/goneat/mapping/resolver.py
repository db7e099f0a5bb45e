"""Resolve repository-relative file paths to schema ids using a mapping manifest."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, replace

from goneat.mapping.manifest import ExclusionAction, Manifest, MappingRule, SchemaSource
from goneat.utils.globbing import glob_match, normalize_rel_path

_EXCLUDING_ACTIONS = frozenset({None, ExclusionAction.SKIP, ExclusionAction.RETRY_INFERENCE})


@dataclass(frozen=True, slots=True)
class Resolution:
    schema_id: str = ""
    source: SchemaSource | None = None
    rule: MappingRule | None = None
    excluded: bool = False
    reason: str = ""
    confidence: float = 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "schema_id": self.schema_id,
            "source": None if self.source is None else self.source.value,
            "rule": None if self.rule is None else self.rule.to_dict(),
            "excluded": self.excluded,
            "reason": self.reason,
            "confidence": self.confidence,
        }


@dataclass(frozen=True, slots=True)
class ResolverMetrics:
    files_evaluated: int = 0
    mapped: int = 0
    unmapped: int = 0
    excluded: int = 0


class MappingResolver:
    """Applies manifest rules to paths; later rules take priority over earlier ones.

    Metrics are per instance and not synchronized; share a resolver across threads only
    if the counters do not matter.
    """

    def __init__(self, manifest: Manifest) -> None:
        self._manifest = manifest.clone()
        self._metrics = ResolverMetrics()

    @property
    def manifest(self) -> Manifest:
        return self._manifest

    def metrics(self) -> ResolverMetrics:
        return replace(self._metrics)

    def resolve(self, rel_path: str) -> tuple[Resolution, bool]:
        """Return ``(resolution, matched)`` for a repository-relative path."""

        self._bump(files_evaluated=1)
        path = normalize_rel_path(rel_path)

        exclusion = self._apply_exclusions(path)
        if exclusion is not None:
            self._bump(excluded=1)
            return exclusion, True

        # Repository rules were appended after the built-in ones, so walk backwards.
        for rule in reversed(self._manifest.mappings):
            if not match_pattern(rule.pattern, path):
                continue
            if not rule.schema_id:
                # Inference-only rules carry no schema id.
                continue
            self._bump(mapped=1)
            return (
                Resolution(
                    schema_id=rule.schema_id,
                    source=rule.source,
                    rule=rule,
                    confidence=1.0,
                ),
                True,
            )

        self._bump(unmapped=1)
        return Resolution(), False

    def _apply_exclusions(self, path: str) -> Resolution | None:
        for rule in reversed(self._manifest.exclusions):
            if rule.pattern and not match_pattern(rule.pattern, path):
                continue
            if rule.action in _EXCLUDING_ACTIONS:
                return Resolution(excluded=True, reason=rule.reason)
        return None

    def _bump(self, **deltas: int) -> None:
        current = self._metrics
        self._metrics = replace(
            current,
            **{name: getattr(current, name) + delta for name, delta in deltas.items()},
        )


def match_pattern(pattern: str, path: str) -> bool:
    """Doublestar match, falling back to comparing basenames."""

    if not pattern:
        return False
    normalized = pattern.replace("\\", "/")
    if glob_match(normalized, path):
        return True
    return posixpath.basename(path) == posixpath.basename(normalized)


__all__ = ["MappingResolver", "Resolution", "ResolverMetrics", "match_pattern"]
