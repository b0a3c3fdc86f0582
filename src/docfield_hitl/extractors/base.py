from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Literal

Source = Literal["rules", "fallback", "user"]
Validator = Callable[[str], bool]

MAX_PRIORITY = 10

@dataclass
class Candidate:
    value: str
    confidence: float  # 0..1
    source: Source = "rules"
    position: int | None = None
    context: str | None = None
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "confidence": round(self.confidence, 4),
            "source": self.source,
            "position": self.position,
            "context": self.context,
            "reasons": list(self.reasons),
        }


FieldResult = list[Candidate]


@dataclass(frozen=True)
class PatternRule:
    """
    Ordered regex patterns + validators for one field.

    Patterns may be given as strings; they are compiled once here.
    A value is taken from the first capture group when it participated
    in the match, else the full match.
    """
    patterns: tuple[re.Pattern[str], ...]
    validators: tuple[Validator, ...] = ()
    priority: int = MAX_PRIORITY

    def __post_init__(self) -> None:
        compiled = tuple(p if isinstance(p, re.Pattern) else re.compile(p) for p in self.patterns)
        if not compiled:
            raise ValueError("PatternRule needs at least one pattern")
        object.__setattr__(self, "patterns", compiled)
        object.__setattr__(self, "validators", tuple(self.validators))

    @classmethod
    def build(cls, patterns: Iterable[str | re.Pattern[str]], validators: Iterable[Validator] = (),
              priority: int = MAX_PRIORITY, flags: int = 0) -> "PatternRule":
        pats = tuple(p if isinstance(p, re.Pattern) else re.compile(p, flags) for p in patterns)
        return cls(patterns=pats, validators=tuple(validators), priority=priority)


def _trim(value: str) -> str:
    return value.strip()


@dataclass(frozen=True)
class FieldKind:
    """Per-field behavior: cleaning after a match, final normalization, context keywords."""
    name: str
    keywords: tuple[str, ...]
    description: str
    cleaner: Callable[[str], str] = _trim
    post_processor: Callable[[str], str] = _trim


def generic_kind(name: str) -> FieldKind:
    # custom fields: trim only, the field name doubles as keyword and description
    return FieldKind(name=name, keywords=(name.lower(),), description=name)
