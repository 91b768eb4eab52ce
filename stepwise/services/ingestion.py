"""
Ingestion Validator — turns pasted AI-tool export text into validated steps.

The input is whatever the user copied out of a third-party AI tool after
running the export instruction (see ``export_prompts``). It may be wrapped in
a markdown fence, wrapped in an envelope object, or simply broken.

Pipeline (each stage short-circuits on failure):
    1. trim               -> EmptyInput
    2. strip ``` fence
    3. json.loads         -> MalformedJSON
    4. unwrap envelope    ({"steps": [...]} -> [...])
    5. shape check        -> NotAnArray / EmptyArray
    6. per-element schema -> SchemaViolation (first failure only)

Pure and deterministic: no I/O, no Flask, no database. Safe to fuzz.

Usage:
    from stepwise.services.ingestion import parse_export

    result = parse_export(raw_text)
    if result.ok:
        steps = result.steps
    else:
        result.error.kind, result.error.message, result.error.path
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IngestionErrorKind(str, Enum):
    EMPTY_INPUT = "EmptyInput"
    MALFORMED_JSON = "MalformedJSON"
    NOT_AN_ARRAY = "NotAnArray"
    EMPTY_ARRAY = "EmptyArray"
    SCHEMA_VIOLATION = "SchemaViolation"


@dataclass(frozen=True)
class IngestionError:
    kind: IngestionErrorKind
    message: str
    path: str | None = None

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, "path": self.path}


@dataclass(frozen=True)
class ExportedStep:
    """One validated step as produced by the export instruction."""
    step_order: int
    title: str
    prompt_text: str
    context_mode: str
    output_summary: str
    tips: str = ""

    def to_dict(self) -> dict:
        return {
            "step_order": self.step_order,
            "title": self.title,
            "prompt_text": self.prompt_text,
            "context_mode": self.context_mode,
            "output_summary": self.output_summary,
            "tips": self.tips,
        }


@dataclass(frozen=True)
class IngestionResult:
    steps: list[ExportedStep] = field(default_factory=list)
    error: IngestionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        if self.error:
            return {"success": False, "error": self.error.to_dict()}
        return {"success": True, "steps": [s.to_dict() for s in self.steps]}


class StepSchemaError(ValueError):
    """First schema violation found in a step list. ``path`` is e.g. ``2.title``."""

    def __init__(self, path: str, constraint: str) -> None:
        self.path = path
        self.constraint = constraint
        super().__init__(f"At {path}: {constraint}")


# ── Messages ─────────────────────────────────────────────────────────────────

MSG_EMPTY_INPUT = "Input is empty. Paste the JSON output from your AI tool."
MSG_MALFORMED_JSON = "Invalid JSON. Make sure you copied the entire output from your AI tool."
MSG_NOT_AN_ARRAY = (
    "Expected a JSON array of steps, but got something else. "
    "Make sure the output starts with [ and ends with ]."
)
MSG_EMPTY_ARRAY = "The array is empty, no steps were found. Try running the export prompt again."

# Opening fence with optional language tag (```json, ```JSON, ```js ...).
_OPEN_FENCE = re.compile(r"^```[\w+-]*[ \t]*\r?\n?")
_CLOSE_FENCE = re.compile(r"\r?\n?\s*```\s*$")

# field name -> required?  (tips is optional, defaulted to "")
_STRING_FIELDS = (
    ("title", True),
    ("prompt_text", True),
    ("context_mode", True),
    ("output_summary", True),
    ("tips", False),
)


# ── Pipeline stages ──────────────────────────────────────────────────────────


def strip_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if the text starts with one."""
    if not text.startswith("```"):
        return text
    text = _OPEN_FENCE.sub("", text, count=1)
    text = _CLOSE_FENCE.sub("", text, count=1)
    return text.strip()


def unwrap_envelope(value: Any) -> Any:
    """Return the first array-valued top-level entry of an object, else the value itself."""
    if isinstance(value, dict):
        for item in value.values():
            if isinstance(item, list):
                return item
    return value


def _is_int(value: Any) -> bool:
    # JSON true/false decode to bool, which is an int subclass
    return isinstance(value, int) and not isinstance(value, bool)


def validate_step_record(record: Any, index: int, *, require_order: bool = True) -> ExportedStep:
    """Validate one element. Raises StepSchemaError naming the first bad field."""
    prefix = str(index)
    if not isinstance(record, dict):
        raise StepSchemaError(prefix, "Expected object, received " + _type_name(record))

    order = record.get("step_order")
    if require_order or order is not None:
        if order is None:
            raise StepSchemaError(f"{prefix}.step_order", "Required")
        if not _is_int(order):
            # 2.0 is accepted as 2; 2.5 is not an integer
            if isinstance(order, float) and order.is_integer():
                order = int(order)
            else:
                raise StepSchemaError(
                    f"{prefix}.step_order",
                    "Expected integer, received " + _type_name(order),
                )
        if order < 1:
            raise StepSchemaError(f"{prefix}.step_order", "Number must be greater than or equal to 1")
    else:
        order = index + 1

    values: dict[str, str] = {}
    for name, required in _STRING_FIELDS:
        value = record.get(name)
        if value is None:
            if required:
                raise StepSchemaError(f"{prefix}.{name}", "Required")
            value = ""
        if not isinstance(value, str):
            raise StepSchemaError(f"{prefix}.{name}", "Expected string, received " + _type_name(value))
        values[name] = value

    if not values["title"]:
        raise StepSchemaError(f"{prefix}.title", "String must contain at least 1 character(s)")

    return ExportedStep(step_order=order, **values)


def validate_step_records(records: list, *, require_order: bool = True) -> list[ExportedStep]:
    """Validate every element in order, stopping at the first failure."""
    return [
        validate_step_record(record, i, require_order=require_order)
        for i, record in enumerate(records)
    ]


def parse_export(raw: str | None) -> IngestionResult:
    """Run the full ingestion pipeline over a pasted blob."""
    cleaned = (raw or "").strip()
    if not cleaned:
        return _fail(IngestionErrorKind.EMPTY_INPUT, MSG_EMPTY_INPUT)

    cleaned = strip_fence(cleaned)

    try:
        parsed = json.loads(cleaned, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return _fail(IngestionErrorKind.MALFORMED_JSON, MSG_MALFORMED_JSON)

    parsed = unwrap_envelope(parsed)

    if not isinstance(parsed, list):
        return _fail(IngestionErrorKind.NOT_AN_ARRAY, MSG_NOT_AN_ARRAY)
    if not parsed:
        return _fail(IngestionErrorKind.EMPTY_ARRAY, MSG_EMPTY_ARRAY)

    try:
        steps = validate_step_records(parsed)
    except StepSchemaError as exc:
        return _fail(IngestionErrorKind.SCHEMA_VIOLATION, str(exc), path=exc.path)

    return IngestionResult(steps=steps)


# ── Internals ────────────────────────────────────────────────────────────────


def _reject_constant(name: str):
    # NaN, Infinity and -Infinity are not JSON.
    raise ValueError(f"invalid JSON constant: {name}")


def _fail(kind: IngestionErrorKind, message: str, path: str | None = None) -> IngestionResult:
    return IngestionResult(error=IngestionError(kind=kind, message=message, path=path))


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__
