"""Parsing of untrusted structured output from a generative service.

A ``StructuredParser`` pairs a pydantic shape (built from strict field types)
with a table of per-field coercions. Parsing is validate, then coerce, then
revalidate:

1. A payload that already matches the shape is returned unchanged.
2. Otherwise every field listed in the coercion table is repaired on a copy
   of the payload and the copy is validated again.
3. A payload that still fails raises ``ValidationError``. Callers decide
   whether that aborts the operation or only drops the offending item.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Generic, Iterable, List, Mapping, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel

from .errors import ValidationError

logger = logging.getLogger("recapframe.structured")

ShapeT = TypeVar("ShapeT", bound=BaseModel)
Coercion = Callable[[Any], Any]


def as_string_list(value: Any) -> Any:
    if isinstance(value, list):
        return [str(item) for item in value]
    if isinstance(value, str):
        return [value]
    return []


def as_string(value: Any) -> Any:
    if isinstance(value, (int, float, bool)):
        return str(value).lower() if isinstance(value, bool) else str(value)
    return value


def as_number(default: float = 0.0) -> Coercion:
    def _coerce(value: Any) -> Any:
        if value is None or value == "":
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            return value

    return _coerce


def with_default(default: Any, inner: Optional[Coercion] = None) -> Coercion:
    def _coerce(value: Any) -> Any:
        if value is None or value == "":
            return default
        return inner(value) if inner else value

    return _coerce


def nested(coercions: Mapping[str, Coercion]) -> Coercion:
    """Apply a coercion table to a nested object (missing object -> {})."""

    def _coerce(value: Any) -> Any:
        source = value if isinstance(value, dict) else {}
        return apply_coercions(source, coercions)

    return _coerce


def apply_coercions(data: Mapping[str, Any], coercions: Mapping[str, Coercion]) -> Dict[str, Any]:
    repaired = dict(data)
    for name, coerce in coercions.items():
        repaired[name] = coerce(data.get(name))
    return repaired


def parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "Invalid JSON response from the language model", reason="json"
        ) from exc


class StructuredParser(Generic[ShapeT]):
    def __init__(
        self,
        shape: Type[ShapeT],
        coercions: Optional[Mapping[str, Coercion]] = None,
    ) -> None:
        self.shape = shape
        self.coercions = dict(coercions or {})

    def validate(self, raw: Any) -> Optional[ShapeT]:
        """Shape validation only. Returns ``None`` on mismatch."""
        try:
            return self.shape.model_validate(raw)
        except pydantic.ValidationError:
            return None

    def coerce(self, raw: Any) -> Any:
        if not isinstance(raw, Mapping):
            return raw
        return apply_coercions(raw, self.coercions)

    def parse(self, raw: Any) -> ShapeT:
        parsed = self.validate(raw)
        if parsed is not None:
            return parsed
        logger.info("%s failed strict validation, attempting coercion", self.shape.__name__)
        parsed = self.validate(self.coerce(raw))
        if parsed is None:
            raise ValidationError(
                f"Failed to validate or transform {self.shape.__name__}",
                reason="shape",
            )
        return parsed

    def parse_many(self, items: Iterable[Any]) -> List[ShapeT]:
        survivors: List[ShapeT] = []
        for index, item in enumerate(items):
            try:
                survivors.append(self.parse(item))
            except ValidationError:
                logger.warning("Dropping item %s: failed shape validation", index)
        return survivors
