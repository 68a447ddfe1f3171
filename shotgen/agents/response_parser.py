"""Response Parser for recovering shot lists from raw backend output.

Backends are asked for a bare JSON object but frequently wrap it in prose or
Markdown fences. The parser recovers the JSON value most likely to be the
shot list (an object with ``shots`` or an array of shots), then
validates it against the ShotListDescription schema. Anything that does not
validate is rejected with a ParseError; nothing is coerced into a partial
shot list.
"""

import itertools
import json
import re
from dataclasses import asdict, dataclass
from typing import Any, Iterator, List, Optional

from pydantic import ValidationError

from shotgen.agents.base import ParseError
from shotgen.schemas.results import BackendCallResult
from shotgen.schemas.segment import GenerationMode
from shotgen.schemas.shot_list import ShotListDescription


_CODE_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.S)

# Cap on the raw excerpt kept in error context
_EXCERPT_CHARS = 200


@dataclass
class ValidationErrorDetail:
    """Detailed information about a validation error."""

    field_path: str
    violation_type: str
    message: str


def _fenced_blocks(text: str) -> List[str]:
    return [m.group(1) for m in _CODE_FENCE.finditer(text)]


def _try_loads(candidate: str) -> Optional[Any]:
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None


def _next_opening(text: str, position: int) -> int:
    starts = [i for i in (text.find('{', position), text.find('[', position)) if i != -1]
    return min(starts) if starts else -1


def _balanced_spans(text: str) -> Iterator[str]:
    """Yield every balanced ``{...}`` or ``[...]`` substring, in order of its opening bracket.

    Brackets inside JSON strings (including escaped quotes) are ignored.
    """
    start = _next_opening(text, 0)
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            char = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif char == '\\':
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char in '{[':
                depth += 1
            elif char in '}]':
                depth -= 1
                if depth == 0:
                    yield text[start:i + 1]
                    break
        start = _next_opening(text, start + 1)


def _looks_like_shot_list(payload: Any) -> bool:
    if isinstance(payload, dict):
        return "shots" in payload
    if isinstance(payload, list):
        return bool(payload) and all(isinstance(item, dict) for item in payload)
    return False


def extract_json_payload(text: str) -> Optional[Any]:
    """Recover the JSON payload from backend text.

    The whole text wins when it is JSON. Otherwise the content of each
    Markdown fence and then every balanced ``{...}``/``[...]`` substring are
    tried in order; the first one shaped like a shot list (an object with
    ``shots`` or a non-empty array of objects) is returned, falling back to
    the first object or array that parsed at all.

    Returns:
        The decoded JSON value, or None when nothing is recoverable
    """
    stripped = (text or "").strip()
    if not stripped:
        return None

    payload = _try_loads(stripped)
    if isinstance(payload, (dict, list)):
        return payload

    fallback = None
    candidates = itertools.chain(_fenced_blocks(stripped), _balanced_spans(stripped))
    for candidate in candidates:
        payload = _try_loads(candidate)
        if not isinstance(payload, (dict, list)):
            continue
        if _looks_like_shot_list(payload):
            return payload
        if fallback is None:
            fallback = payload

    return fallback


class ResponseParser:
    """Turns a BackendCallResult into a validated ShotListDescription."""

    def parse(
        self,
        call_result: BackendCallResult,
        mode: GenerationMode = GenerationMode.STANDARD
    ) -> ShotListDescription:
        """Parse and validate a backend response.

        Args:
            call_result: Raw backend output
            mode: Generation mode; enhanced-continuity requires per-shot
                continuity markers

        Returns:
            ShotListDescription

        Raises:
            ParseError: If no valid, non-empty shot list can be recovered
        """
        base_context = {
            "backend": call_result.backend.value,
            "model": call_result.model,
            "raw_excerpt": call_result.text[:_EXCERPT_CHARS],
        }

        payload = extract_json_payload(call_result.text)
        if payload is None:
            raise ParseError("No JSON object found in backend response", base_context)

        if isinstance(payload, list):
            payload = {"shots": payload}

        shots = payload.get("shots")
        if isinstance(shots, list) and not shots:
            raise ParseError("Backend returned an empty shot list", base_context)

        try:
            shot_list = ShotListDescription.model_validate(payload)
        except ValidationError as e:
            errors = self._extract_validation_errors(e)
            raise ParseError(
                f"Shot list failed schema validation ({len(errors)} errors)",
                {**base_context, "errors": [asdict(err) for err in errors]}
            ) from e

        if mode == GenerationMode.ENHANCED_CONTINUITY:
            missing = [
                shot.shot_number for shot in shot_list.shots
                if shot.continuity_markers is None
            ]
            if missing:
                raise ParseError(
                    "Shots are missing continuityMarkers",
                    {**base_context, "shot_numbers": missing}
                )

        return shot_list

    def _extract_validation_errors(
        self,
        validation_error: ValidationError
    ) -> List[ValidationErrorDetail]:
        """Extract detailed error information from Pydantic ValidationError."""
        errors: List[ValidationErrorDetail] = []

        for error in validation_error.errors():
            errors.append(ValidationErrorDetail(
                field_path=".".join(str(loc) for loc in error["loc"]),
                violation_type=error["type"],
                message=error["msg"]
            ))

        return errors
