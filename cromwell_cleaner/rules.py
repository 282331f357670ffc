"""
Scaffold rule table.

Each rule names one kind of execution-scaffold file Cromwell writes inside a
call directory. A leaf that no rule matches is kept. The built-in table can be
replaced with a JSON file (``--rules`` or CROMWELL_CLEANER_RULES) and printed
with ``--list-rules`` so operators can audit it before deleting anything.

JSON format::

    {"rules": [
        {"name": "stdout", "reason": "CapturedStream", "match": "exact",
         "pattern": "stdout", "description": "Captured standard output"}
    ]}
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable

from .exceptions import ConfigurationError


class DeleteReason(str, Enum):
    """Why an object is considered disposable scaffold."""

    SCAFFOLD_SCRIPT = "ScaffoldScript"
    CAPTURED_STREAM = "CapturedStream"
    RETURN_CODE_MARKER = "ReturnCodeMarker"
    TEMPORARY_FILE = "TemporaryFile"


class MatchKind(str, Enum):
    """How a rule pattern is compared with the leaf below the call directory."""

    EXACT = "exact"
    PREFIX = "prefix"
    REGEX = "regex"


@dataclass(frozen=True)
class ScaffoldRule:
    """A single disposable-file rule."""

    name: str
    reason: DeleteReason
    match: MatchKind
    pattern: str
    description: str = ""
    _compiled: re.Pattern | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.pattern:
            raise ConfigurationError(f"Rule {self.name!r} has an empty pattern")
        if self.match is MatchKind.REGEX:
            try:
                compiled = re.compile(self.pattern)
            except re.error as exc:
                raise ConfigurationError(f"Rule {self.name!r} has an invalid regex: {exc}") from exc
            object.__setattr__(self, "_compiled", compiled)

    def matches(self, leaf_name: str) -> bool:
        """Return True if ``leaf_name`` is covered by this rule."""
        if self.match is MatchKind.EXACT:
            return leaf_name == self.pattern
        if self.match is MatchKind.PREFIX:
            return leaf_name.startswith(self.pattern)
        return self._compiled.fullmatch(leaf_name) is not None


DEFAULT_RULES: tuple[ScaffoldRule, ...] = (
    ScaffoldRule("task-script", DeleteReason.SCAFFOLD_SCRIPT, MatchKind.EXACT, "script", "Generated task command script"),
    ScaffoldRule("stdout", DeleteReason.CAPTURED_STREAM, MatchKind.EXACT, "stdout", "Captured standard output"),
    ScaffoldRule("stderr", DeleteReason.CAPTURED_STREAM, MatchKind.EXACT, "stderr", "Captured standard error"),
    ScaffoldRule("return-code", DeleteReason.RETURN_CODE_MARKER, MatchKind.EXACT, "rc", "Task return-code marker"),
    ScaffoldRule(
        "gcs-localization",
        DeleteReason.SCAFFOLD_SCRIPT,
        MatchKind.EXACT,
        "gcs_localization.sh",
        "Input localization helper script",
    ),
    ScaffoldRule(
        "gcs-delocalization",
        DeleteReason.SCAFFOLD_SCRIPT,
        MatchKind.EXACT,
        "gcs_delocalization.sh",
        "Output delocalization helper script",
    ),
    ScaffoldRule(
        "gcs-transfer",
        DeleteReason.SCAFFOLD_SCRIPT,
        MatchKind.EXACT,
        "gcs_transfer.sh",
        "Transfer helper library script",
    ),
    ScaffoldRule(
        "pipelines-action-logs",
        DeleteReason.CAPTURED_STREAM,
        MatchKind.REGEX,
        r"pipelines-logs/action/\d+/(?:stdout|stderr)",
        "Per-action streams captured by the Pipelines API",
    ),
    ScaffoldRule(
        "tmp-directory",
        DeleteReason.TEMPORARY_FILE,
        MatchKind.REGEX,
        r"tmp\.[A-Za-z0-9]{6,}/.+",
        "Contents of mktemp-style tmp.XXXXXX working directories",
    ),
)


def _rule_from_mapping(entry: dict, index: int) -> ScaffoldRule:
    """Build a rule from one JSON entry."""
    if not isinstance(entry, dict):
        raise ConfigurationError(f"Rule #{index} must be an object, got {type(entry).__name__}")
    missing = [name for name in ("name", "reason", "match", "pattern") if not entry.get(name)]
    if missing:
        raise ConfigurationError(f"Rule #{index} is missing {', '.join(missing)}")
    try:
        reason = DeleteReason(entry["reason"])
    except ValueError:
        allowed = ", ".join(r.value for r in DeleteReason)
        raise ConfigurationError(f"Rule {entry['name']!r}: unknown reason {entry['reason']!r} (expected {allowed})") from None
    try:
        match = MatchKind(entry["match"])
    except ValueError:
        allowed = ", ".join(m.value for m in MatchKind)
        raise ConfigurationError(f"Rule {entry['name']!r}: unknown match {entry['match']!r} (expected {allowed})") from None
    return ScaffoldRule(
        name=str(entry["name"]),
        reason=reason,
        match=match,
        pattern=str(entry["pattern"]),
        description=str(entry.get("description", "")),
    )


def build_rules(entries: Iterable[dict]) -> tuple[ScaffoldRule, ...]:
    """Validate and build a rule table from parsed JSON entries.

    Raises:
        ConfigurationError: On an empty table, duplicate names or invalid rules.
    """
    rules = tuple(_rule_from_mapping(entry, idx) for idx, entry in enumerate(entries, start=1))
    if not rules:
        raise ConfigurationError("Rule table is empty")
    seen: set[str] = set()
    for rule in rules:
        if rule.name in seen:
            raise ConfigurationError(f"Duplicate rule name {rule.name!r}")
        seen.add(rule.name)
    return rules


def load_rules(path: Path | str | None) -> tuple[ScaffoldRule, ...]:
    """Load a rule table from JSON, or return the built-in table when ``path`` is None."""
    if path is None:
        return DEFAULT_RULES
    rules_path = Path(path).expanduser()
    try:
        document = json.loads(rules_path.read_text())
    except OSError as exc:
        raise ConfigurationError(f"Cannot read rule table {rules_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Rule table {rules_path} is not valid JSON: {exc}") from exc
    if isinstance(document, dict):
        entries = document.get("rules")
    else:
        entries = document
    if not isinstance(entries, list):
        raise ConfigurationError(f"Rule table {rules_path} must contain a 'rules' list")
    return build_rules(entries)


def rules_to_json(rules: Iterable[ScaffoldRule]) -> str:
    """Serialize a rule table in the format accepted by load_rules."""
    return json.dumps(
        {
            "rules": [
                {
                    "name": rule.name,
                    "reason": rule.reason.value,
                    "match": rule.match.value,
                    "pattern": rule.pattern,
                    "description": rule.description,
                }
                for rule in rules
            ]
        },
        indent=2,
    )


def print_rules(rules: Iterable[ScaffoldRule]) -> None:
    """Print the rule table in effect."""
    print("Files deleted when found below a call-<name>[/shard-N][/attempt-N] directory:")
    for rule in rules:
        print(f"  {rule.name:22} {rule.reason.value:17} {rule.match.value:6} {rule.pattern}")
        if rule.description:
            print(f"  {'':22} {rule.description}")
    print("Anything else is kept.")
