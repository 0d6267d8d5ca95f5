"""Content safety flags shared by the checks, the metrics rows and the API."""
from __future__ import annotations

from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict

Severity = Literal["critical", "high", "medium", "low"]

SEVERITY_RANK: dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}

FLAG_LABELS: dict[str, str] = {
    "pii_detected": "PII Detected",
    "bias_detected": "Bias Detected",
    "content_violation": "Content Violation",
    "prompt_injection_detected": "Prompt Injection",
    "fraudulent_intent_detected": "Fraudulent Intent",
    "misinformation_detected": "Misinformation",
    "automation_misuse_detected": "Automation Misuse",
    "self_harm_detected": "Self Harm",
    "extremist_content_detected": "Extremist Content",
    "child_safety_violation": "Child Safety",
}

FLAG_SEVERITY: dict[str, Severity] = {
    "child_safety_violation": "critical",
    "extremist_content_detected": "critical",
    "prompt_injection_detected": "high",
    "pii_detected": "high",
}


def flag_severity(name: str) -> Severity:
    """Severity tier of a flag; anything not listed is medium."""
    return FLAG_SEVERITY.get(name, "medium")


class ViolationDetail(BaseModel):
    """A single true flag rendered for people (emails, moderator UI)."""

    flag: str
    type: str
    severity: Severity


class ContentFlags(BaseModel):
    """Fixed-shape record of the ten safety dimensions.

    Every field is always present and defaults to ``False``. Instances are
    immutable; build new ones with :meth:`from_partial` or :meth:`merge`.
    """

    model_config = ConfigDict(frozen=True)

    pii_detected: bool = False
    content_violation: bool = False
    bias_detected: bool = False
    prompt_injection_detected: bool = False
    fraudulent_intent_detected: bool = False
    misinformation_detected: bool = False
    self_harm_detected: bool = False
    extremist_content_detected: bool = False
    child_safety_violation: bool = False
    automation_misuse_detected: bool = False

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(cls.model_fields.keys())

    @classmethod
    def from_partial(cls, partial: Optional[Mapping[str, Any]]) -> "ContentFlags":
        """Build flags from a possibly partial mapping, ignoring unknown keys."""
        if not partial:
            return cls()
        names = cls.field_names()
        return cls(**{key: value is True for key, value in partial.items() if key in names})

    @classmethod
    def merge(cls, *partials: Optional[Mapping[str, Any]] | "ContentFlags") -> "ContentFlags":
        """OR-merge several partial results; a true value is never overwritten."""
        merged = {name: False for name in cls.field_names()}
        for partial in partials:
            if partial is None:
                continue
            values = partial.model_dump() if isinstance(partial, ContentFlags) else partial
            for key, value in values.items():
                if key in merged and value is True:
                    merged[key] = True
        return cls(**merged)

    def any_flagged(self) -> bool:
        return any(self.model_dump().values())

    def flagged_names(self) -> list[str]:
        """Names of the true flags, in declaration order."""
        return [name for name, value in self.model_dump().items() if value]

    def labels(self) -> list[str]:
        return [FLAG_LABELS[name] for name in self.flagged_names()]

    def describe(self) -> list[ViolationDetail]:
        return [
            ViolationDetail(flag=name, type=FLAG_LABELS[name], severity=flag_severity(name))
            for name in self.flagged_names()
        ]

    def blocking_names(self, min_severity: str) -> list[str]:
        """True flags whose severity is at or above ``min_severity``."""
        threshold = SEVERITY_RANK[min_severity]
        return [name for name in self.flagged_names() if SEVERITY_RANK[flag_severity(name)] >= threshold]

    def with_fraud_as_automation(self) -> "ContentFlags":
        """Copy where automation misuse also counts fraudulent intent."""
        return self.model_copy(
            update={
                "automation_misuse_detected": self.fraudulent_intent_detected or self.automation_misuse_detected
            }
        )


def describe_flags(raw_flags: Optional[Mapping[str, Any]]) -> list[ViolationDetail]:
    """Describe flags as stored in a metrics row (a plain JSON mapping)."""
    return ContentFlags.from_partial(raw_flags).describe()


def flag_labels(raw_flags: Optional[Mapping[str, Any]]) -> list[str]:
    return ContentFlags.from_partial(raw_flags).labels()
