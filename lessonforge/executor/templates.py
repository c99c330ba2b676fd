"""Template resolution for workflow step inputs.

Step inputs may embed placeholders such as ``{{step2.output.gameId}}``
referring to the stored output of an earlier step. Resolution is a single
recursive substitution pass over strings, lists and dicts; nothing is ever
evaluated.

- A string that is exactly one placeholder becomes the referenced value
  itself (a dict stays a dict).
- A placeholder embedded in a longer string is replaced by the JSON
  serialization of the value.
- Anything that cannot be resolved (no result for that step, a missing
  path segment, or a reference to the current or a later step) becomes
  ``UNRESOLVED``. Resolution never raises.
"""

import json
import logging
import re
from typing import Any, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

UNRESOLVED = None

# {{ stepN.output.path.to.field }}; "output" may be omitted
PLACEHOLDER_RE = re.compile(r"\{\{\s*step(\d+)((?:\.[^\s.{}]+)*)\s*\}\}")

_MISSING = object()


def find_references(value: Any) -> set[int]:
    """Return every step ordinal referenced anywhere inside ``value``."""
    refs: set[int] = set()
    if isinstance(value, str):
        refs.update(int(m.group(1)) for m in PLACEHOLDER_RE.finditer(value))
    elif isinstance(value, dict):
        for item in value.values():
            refs |= find_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            refs |= find_references(item)
    return refs


def resolve_templates(
    value: Any,
    results: dict[int, Any],
    current_ordinal: Optional[int] = None,
) -> Any:
    """Resolve placeholders in ``value`` against ``results`` (ordinal -> output).

    When ``current_ordinal`` is given, references to that ordinal or any
    later one resolve to ``UNRESOLVED`` even if a result happens to exist.
    """
    if isinstance(value, str):
        return _resolve_string(value, results, current_ordinal)
    if isinstance(value, dict):
        return {k: resolve_templates(v, results, current_ordinal) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_templates(v, results, current_ordinal) for v in value]
    if isinstance(value, tuple):
        return tuple(resolve_templates(v, results, current_ordinal) for v in value)
    return value


def resolve(input: Any, workflow, ordinal: Optional[int] = None) -> Any:
    """Resolve a step input against a workflow's accumulated results.

    ``ordinal`` defaults to the step the workflow is currently positioned
    on, so only strictly earlier steps can be referenced.
    """
    if ordinal is None:
        ordinal = workflow.current_step + 1
    return resolve_templates(input, workflow.results, ordinal)


def _resolve_string(text: str, results: dict[int, Any], current_ordinal: Optional[int]) -> Any:
    whole = PLACEHOLDER_RE.fullmatch(text)
    if whole:
        return _lookup(whole, results, current_ordinal)

    def _splice(match: re.Match) -> str:
        return json.dumps(_lookup(match, results, current_ordinal), default=str)

    return PLACEHOLDER_RE.sub(_splice, text)


def _lookup(match: re.Match, results: dict[int, Any], current_ordinal: Optional[int]) -> Any:
    ordinal = int(match.group(1))
    if current_ordinal is not None and ordinal >= current_ordinal:
        logger.debug(f"Placeholder {match.group(0)} references step {ordinal} from step {current_ordinal}")
        return UNRESOLVED
    if ordinal not in results:
        return UNRESOLVED

    segments = [s for s in match.group(2).split(".") if s]
    if segments and segments[0] == "output":
        segments = segments[1:]

    current = results[ordinal]
    for segment in segments:
        current = _step_into(current, segment)
        if current is _MISSING:
            return UNRESOLVED
    return current


def _step_into(value: Any, segment: str) -> Any:
    if isinstance(value, dict):
        if segment in value:
            return value[segment]
        if segment.isdigit() and int(segment) in value:
            return value[int(segment)]
        return _MISSING
    if isinstance(value, (list, tuple)):
        if segment.isdigit() and int(segment) < len(value):
            return value[int(segment)]
        return _MISSING
    if isinstance(value, BaseModel):
        return getattr(value, segment, _MISSING)
    return _MISSING
