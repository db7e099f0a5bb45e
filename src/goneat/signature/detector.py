"""
goneat — content signature detection.

File: src/goneat/signature/detector.py

Purpose
- Score a file snippet against every compiled signature and report the best match.

Functional requirements
- A signature's score is the sum of the weights of the matchers that fire.
- A signature qualifies only when its score reaches its confidence threshold.
- ``detect`` keeps the first signature reaching the highest score; ties never replace.
- Reported scores are clamped to ``[0, 1]``.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from goneat.signature.manifest import DEFAULT_CONFIDENCE_THRESHOLD, SignatureManifestError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from goneat.signature.manifest import Matcher, Signature, SignatureManifest

_LITERAL_TYPES: Final[frozenset[str]] = frozenset({"contains", "prefix", "suffix"})
_REGEX_TYPE: Final[str] = "regex"

# A bare inline flag group such as ``(?i)`` or ``(?-i)``.
_FLAG_GROUP: Final[re.Pattern[str]] = re.compile(
    r"\(\?((?=[a-zA-Z-]*[a-zA-Z])[a-zA-Z]*(?:-[a-zA-Z]+)?)\)"
)
# Everything of a group opener up to where its body starts.
_GROUP_OPENER: Final[re.Pattern[str]] = re.compile(
    r"\((?:\?(?:P?<[A-Za-z_]\w*>|<[=!]|[=!:#]|P=|[a-zA-Z]*(?:-[a-zA-Z]+)?:)?)?"
)


@dataclass(frozen=True, slots=True)
class DetectOptions:
    """Restrict detection to signature ids (or aliases), or else to categories."""

    allowed_ids: frozenset[str] = frozenset()
    allowed_categories: frozenset[str] = frozenset()

    @classmethod
    def create(
        cls,
        *,
        ids: Iterable[str] = (),
        categories: Iterable[str] = (),
    ) -> DetectOptions:
        return cls(
            allowed_ids=frozenset(item.strip().lower() for item in ids if item.strip()),
            allowed_categories=frozenset(
                item.strip().lower() for item in categories if item.strip()
            ),
        )

    def allows(self, signature: Signature) -> bool:
        if self.allowed_ids:
            if signature.id.lower() in self.allowed_ids:
                return True
            return any(alias.lower() in self.allowed_ids for alias in signature.aliases)
        if self.allowed_categories:
            return signature.category.lower() in self.allowed_categories
        return True


@dataclass(frozen=True, slots=True)
class SignatureMatch:
    signature: Signature
    score: float
    matchers: tuple[Matcher, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.signature.id,
            "category": self.signature.category,
            "score": self.score,
            "source": self.signature.source,
            "matchers": [matcher.to_dict() for matcher in self.matchers],
        }


@dataclass(frozen=True, slots=True)
class _CompiledMatcher:
    matcher: Matcher
    literal: str = ""
    regex: re.Pattern[str] | None = None

    def fires(self, sample: str, lowered: str) -> bool:
        kind = self.matcher.type
        if kind == _REGEX_TYPE:
            return self.regex is not None and self.regex.search(sample) is not None
        text = lowered if self.matcher.ignore_case else sample
        if kind == "contains":
            return self.literal in text
        if kind == "prefix":
            return text.startswith(self.literal)
        return text.endswith(self.literal)


@dataclass(frozen=True, slots=True)
class _CompiledSignature:
    signature: Signature
    threshold: float
    matchers: tuple[_CompiledMatcher, ...]
    extensions: frozenset[str] = field(default_factory=frozenset)

    def accepts_path(self, path: str) -> bool:
        if not self.extensions:
            return True
        return posixpath.splitext(path.replace("\\", "/"))[1].lower() in self.extensions

    def evaluate(self, sample: str, lowered: str) -> tuple[float, tuple[Matcher, ...]]:
        score = 0.0
        fired: list[Matcher] = []
        for compiled in self.matchers:
            if compiled.fires(sample, lowered):
                score += compiled.matcher.weight
                fired.append(compiled.matcher)
        return score, tuple(fired)


class SignatureDetector:
    """Evaluates file snippets against signatures compiled once at construction."""

    def __init__(self, manifest: SignatureManifest | None) -> None:
        signatures = () if manifest is None else manifest.signatures
        compiled: list[_CompiledSignature] = []
        for signature in signatures:
            matchers = tuple(
                item
                for item in (_compile_matcher(signature, matcher) for matcher in signature.matchers)
                if item is not None
            )
            if not matchers:
                continue
            threshold = signature.confidence_threshold
            compiled.append(
                _CompiledSignature(
                    signature=signature,
                    threshold=threshold if threshold > 0 else DEFAULT_CONFIDENCE_THRESHOLD,
                    matchers=matchers,
                    extensions=frozenset(ext.lower() for ext in signature.file_extensions),
                )
            )
        self._signatures = tuple(compiled)

    def __len__(self) -> int:
        return len(self._signatures)

    def detect(
        self,
        path: str,
        snippet: bytes | str,
        options: DetectOptions | None = None,
    ) -> tuple[SignatureMatch | None, bool]:
        """Return the best qualifying match for ``snippet`` and whether one was found."""

        best: SignatureMatch | None = None
        best_score = 0.0
        for signature, score, fired in self._qualifying(path, snippet, options):
            if score > best_score:
                best_score = score
                best = SignatureMatch(signature=signature, score=_clamp(score), matchers=fired)
        return best, best is not None

    def detect_all(
        self,
        path: str,
        snippet: bytes | str,
        options: DetectOptions | None = None,
    ) -> list[SignatureMatch]:
        """Return every qualifying match sorted by score (descending) then id."""

        matches = [
            SignatureMatch(signature=signature, score=_clamp(score), matchers=fired)
            for signature, score, fired in self._qualifying(path, snippet, options)
        ]
        matches.sort(key=lambda match: (-match.score, match.signature.id))
        return matches

    def _qualifying(
        self,
        path: str,
        snippet: bytes | str,
        options: DetectOptions | None,
    ) -> Iterable[tuple[Signature, float, tuple[Matcher, ...]]]:
        opts = options or DetectOptions()
        if isinstance(snippet, bytes):
            sample = snippet.decode("utf-8", errors="replace")
        else:
            sample = snippet
        lowered = sample.lower()
        for compiled in self._signatures:
            if not opts.allows(compiled.signature) or not compiled.accepts_path(path):
                continue
            score, fired = compiled.evaluate(sample, lowered)
            if score >= compiled.threshold:
                yield compiled.signature, score, fired


def _compile_matcher(signature: Signature, matcher: Matcher) -> _CompiledMatcher | None:
    if matcher.type in _LITERAL_TYPES:
        literal = _normalize_literal(matcher.value)
        if matcher.ignore_case:
            literal = literal.lower()
        return _CompiledMatcher(matcher=matcher, literal=literal)
    if matcher.type == _REGEX_TYPE:
        if not matcher.pattern:
            return None
        flags = re.MULTILINE
        if matcher.ignore_case:
            flags |= re.IGNORECASE
        try:
            regex = re.compile(_scope_inline_flags(matcher.pattern), flags)
        except re.error as exc:
            raise SignatureManifestError(
                f"signature {signature.id!r}: invalid regex {matcher.pattern!r}: {exc}"
            ) from exc
        return _CompiledMatcher(matcher=matcher, regex=regex)
    return None


def _scope_inline_flags(pattern: str) -> str:
    """Rewrite RE2-style mid-pattern flag groups into scoped groups.

    RE2 applies the flags of ``a(?i)b|c`` to the rest of the enclosing group, later
    alternatives included, while ``re`` accepts bare flags only at the very start.
    The rewrite yields ``a(?i:b)|(?i:c)``. Leading flags stay global.
    """

    lead = _leading_flags_end(pattern)
    if _FLAG_GROUP.search(pattern, lead) is None:
        return pattern
    alternatives, end = _rewrite_alternatives(pattern, lead)
    return pattern[:lead] + "|".join(alternatives) + pattern[end:]


def _leading_flags_end(pattern: str) -> int:
    end = 0
    while (match := _FLAG_GROUP.match(pattern, end)) is not None:
        end = match.end()
    return end


def _rewrite_alternatives(pattern: str, pos: int) -> tuple[list[str], int]:
    """Rewrite up to the ``)`` closing the current group; return its alternatives."""

    alternatives: list[str] = []
    current: list[str] = []
    while pos < len(pattern):
        char = pattern[pos]
        if char == ")":
            break
        if char == "\\":
            current.append(pattern[pos : pos + 2])
            pos += 2
        elif char == "[":
            end = _class_end(pattern, pos)
            current.append(pattern[pos:end])
            pos = end
        elif char == "|":
            alternatives.append("".join(current))
            current = []
            pos += 1
        elif (flag := _FLAG_GROUP.match(pattern, pos)) is not None:
            rest, pos = _rewrite_alternatives(pattern, flag.end())
            flags = flag.group(1)
            current.append(f"(?{flags}:{rest[0]})")
            alternatives.append("".join(current))
            alternatives.extend(f"(?{flags}:{alternative})" for alternative in rest[1:])
            return alternatives, pos
        elif char == "(":
            opener = _GROUP_OPENER.match(pattern, pos)
            body = opener.end() if opener is not None else pos + 1
            inner, end = _rewrite_alternatives(pattern, body)
            current.append(pattern[pos:body] + "|".join(inner))
            pos = end
            if pos < len(pattern):
                current.append(")")
                pos += 1
        else:
            current.append(char)
            pos += 1
    alternatives.append("".join(current))
    return alternatives, pos


def _class_end(pattern: str, pos: int) -> int:
    end = pos + 1
    if end < len(pattern) and pattern[end] == "^":
        end += 1
    if end < len(pattern) and pattern[end] == "]":
        end += 1
    while end < len(pattern) and pattern[end] != "]":
        end += 2 if pattern[end] == "\\" else 1
    return min(end + 1, len(pattern))


def _normalize_literal(value: str) -> str:
    return value.strip().replace('\\"', '"')


def _clamp(score: float) -> float:
    return min(1.0, max(0.0, score))


__all__ = ["DetectOptions", "SignatureDetector", "SignatureMatch"]
