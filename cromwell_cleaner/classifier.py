"""
Scaffold classifier.

Decides from the object key alone whether an object is Cromwell execution
scaffold. Keys that don't sit below a ``<workflow-id>/call-<name>`` directory are
always kept, as are files below a call directory that no rule recognizes.
The workflow id must look like a Cromwell UUID so copied output trees that
happen to contain a ``call-`` folder are left alone.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from . import config
from .rules import DEFAULT_RULES, DeleteReason, ScaffoldRule

CALL_SEGMENT_RE = re.compile(r"call-(?P<name>.+)")
SHARD_SEGMENT_RE = re.compile(r"shard-(?P<index>\d+)")
ATTEMPT_SEGMENT_RE = re.compile(r"attempt-(?P<number>\d+)")
# Workflow name and workflow id must precede the call directory
MIN_SEGMENTS_BEFORE_CALL = 2


class Action(str, Enum):
    """What to do with a listed object."""

    KEEP = "keep"
    DELETE = "delete"


@dataclass(frozen=True)
class ExecutionPath:
    """A key decomposed around its innermost call directory."""

    workflow_name: str
    workflow_id: str
    call_name: str
    shard_index: Optional[int]
    attempt_number: Optional[int]
    leaf_name: str


@dataclass(frozen=True)
class Classification:
    """Keep, or Delete with a reason and the rule that matched."""

    action: Action
    reason: Optional[DeleteReason] = None
    rule: Optional[str] = None

    @property
    def is_delete(self) -> bool:
        """True when the object is scaffold and should be removed."""
        return self.action is Action.DELETE


KEEP = Classification(Action.KEEP)


def _find_call_index(segments: Sequence[str]) -> Optional[int]:
    """Index of the innermost call-<name> directory directly below a workflow id, if any."""
    workflow_id_re = config.WORKFLOW_ID_PATTERN
    for idx in range(len(segments) - 2, MIN_SEGMENTS_BEFORE_CALL - 1, -1):
        if CALL_SEGMENT_RE.fullmatch(segments[idx]) and workflow_id_re.fullmatch(segments[idx - 1]):
            return idx
    return None


def parse_execution_path(key: str) -> Optional[ExecutionPath]:
    """Split ``key`` into workflow/call/shard/attempt/leaf, or None if it isn't call-shaped.

    Subworkflow keys contain several call directories; the innermost one owns
    the leaf.
    """
    segments = key.split("/")
    call_idx = _find_call_index(segments)
    if call_idx is None:
        return None

    rest = segments[call_idx + 1 :]
    shard_index = None
    attempt_number = None
    if len(rest) > 1:
        shard = SHARD_SEGMENT_RE.fullmatch(rest[0])
        if shard:
            shard_index = int(shard.group("index"))
            rest = rest[1:]
    if len(rest) > 1:
        attempt = ATTEMPT_SEGMENT_RE.fullmatch(rest[0])
        if attempt:
            attempt_number = int(attempt.group("number"))
            rest = rest[1:]

    leaf_name = "/".join(rest)
    if not leaf_name or not rest[-1]:
        return None

    return ExecutionPath(
        workflow_name=segments[call_idx - 2],
        workflow_id=segments[call_idx - 1],
        call_name=CALL_SEGMENT_RE.fullmatch(segments[call_idx]).group("name"),
        shard_index=shard_index,
        attempt_number=attempt_number,
        leaf_name=leaf_name,
    )


def classify(key: str, rules: Sequence[ScaffoldRule] = DEFAULT_RULES) -> Classification:
    """Classify an object key. Pure: depends only on ``key`` and ``rules``."""
    execution_path = parse_execution_path(key)
    if execution_path is None:
        return KEEP
    for rule in rules:
        if rule.matches(execution_path.leaf_name):
            return Classification(Action.DELETE, reason=rule.reason, rule=rule.name)
    return KEEP
