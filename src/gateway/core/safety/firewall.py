"""PHI/PII/PFI content firewall.

Classifies tool-call argument payloads as sensitive or clear before they can
reach proposal creation or execution. Rules are pluggable so rule sets can be
swapped or unit-tested on their own.

Provides:
- ScanVerdict: Result of one scan (blocked flag plus internal reason)
- ContentScanner: Protocol for payload classifiers
- PatternRule / ProximityRule: Rule building blocks
- PatternScanner: Default scanner over DEFAULT_RULES
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Protocol, Sequence, runtime_checkable

PROXIMITY_WINDOW = 24


@dataclass(frozen=True)
class ScanVerdict:
    """Outcome of a content scan.

    ``reason`` names the rule that matched. It is for logs and tests only and
    is never returned to callers.
    """

    blocked: bool
    reason: str | None = None


CLEAR = ScanVerdict(blocked=False)


@runtime_checkable
class ContentScanner(Protocol):
    """Protocol for payload classifiers."""

    def scan(self, payload: Any) -> ScanVerdict:
        """Classify an arbitrary nested payload."""
        ...


@runtime_checkable
class Rule(Protocol):
    name: str

    def matches(self, text: str) -> bool:
        ...


class PatternRule:
    """Rule that fires when a fixed structural pattern occurs anywhere."""

    def __init__(self, name: str, pattern: str):
        self.name = name
        self.pattern = re.compile(pattern, re.IGNORECASE)

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


class ProximityRule:
    """Rule that fires when a keyword and a value shape appear close together.

    The keyword and the value do not need to be adjacent: anything up to
    ``window`` characters may sit between them, in either order.

    Args:
        name: Rule category name
        keywords: Keywords denoting the restricted category
        value_pattern: Regex for the value shape (date-like, 9-digit-like)
        window: Maximum characters between keyword and value
    """

    def __init__(
        self,
        name: str,
        keywords: Sequence[str],
        value_pattern: str,
        window: int = PROXIMITY_WINDOW,
    ):
        self.name = name
        self.window = window
        # Longest first so multi-word keywords win over their prefixes.
        # Unbounded so keywords embedded in field names (client_ssn, patientDOB) still count.
        ordered = sorted(keywords, key=len, reverse=True)
        keyword = "(?:" + "|".join(re.escape(kw) for kw in ordered) + ")"
        value = f"(?:{value_pattern})"
        gap = r"[\s\S]{0,%d}" % window
        self.forward = re.compile(keyword + gap + value, re.IGNORECASE)
        self.backward = re.compile(value + gap + keyword, re.IGNORECASE)

    def matches(self, text: str) -> bool:
        return bool(self.forward.search(text) or self.backward.search(text))


DOB_KEYWORDS = ("dob", "date of birth", "birth date", "born")
SSN_KEYWORDS = ("ssn", "social security", "social security number")
DOB_DATE_PATTERN = r"\b\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}\b"
SSN_NUMBER_PATTERN = r"\b\d{3}-\d{2}-\d{4}\b|\b\d{9}\b"

DEFAULT_RULES: tuple[Rule, ...] = (
    PatternRule("payment_card", r"\b(?:\d[ -]*?){13,19}\b"),
    PatternRule("policy_number", r"\bpolicy\s*#?\s*\d+\b"),
    PatternRule("drivers_license", r"\bdriver'?s\s*license\b"),
    PatternRule("passport", r"\bpassport\b"),
    PatternRule(
        "clinical",
        r"\bmedical\b|\bdiagnos(?:is|es)\b|\btreatment\b|\bhealth\s*record\b",
    ),
    PatternRule("bearer_token", r"\bBearer\s+[\w\-.=:]+"),
    ProximityRule("date_of_birth", DOB_KEYWORDS, DOB_DATE_PATTERN),
    ProximityRule("social_security", SSN_KEYWORDS, SSN_NUMBER_PATTERN),
)


def stringify_payload(payload: Any) -> str | None:
    """Serialize a payload to compact JSON, or None if it cannot be serialized."""
    try:
        return json.dumps(
            {} if payload is None else payload,
            ensure_ascii=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError, RecursionError):
        return None


class PatternScanner:
    """Default content scanner.

    Stringifies the payload once and tests the text against each rule in
    order, stopping at the first match. Pure function of its input: no I/O,
    no state.
    """

    def __init__(self, rules: Sequence[Rule] = DEFAULT_RULES):
        self.rules = tuple(rules)

    def scan_text(self, text: str | None) -> ScanVerdict:
        if not text:
            return CLEAR
        for rule in self.rules:
            if rule.matches(text):
                return ScanVerdict(blocked=True, reason=rule.name)
        return CLEAR

    def scan(self, payload: Any) -> ScanVerdict:
        """Classify a tool-call argument payload.

        Args:
            payload: Arbitrary nested structure of strings, numbers, lists and
                mappings. None and unserializable payloads are clear.

        Returns:
            ScanVerdict, blocked on the first matching rule
        """
        return self.scan_text(stringify_payload(payload))
