"""JSON contracts for oracle replies.

Every oracle reply is validated here before the pipeline trusts it; a reply with
any validation error is treated as a failed call.
"""

from __future__ import annotations

from typing import Any, Dict, List

from jsonschema import Draft202012Validator


CATEGORIES = (
    "machinelearning",
    "nlp",
    "computervision",
    "robotics",
    "ethics",
    "business",
    "research",
    "tools",
    "news",
    "other",
)


CLASSIFICATION_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "ArticleClassification",
    "type": "object",
    "required": ["relevant", "quality_score", "category", "summary"],
    "properties": {
        "relevant": {"type": "boolean"},
        "quality_score": {"type": "number", "minimum": 0, "maximum": 1},
        "category": {"type": "string", "enum": list(CATEGORIES)},
        "summary": {"type": "string"},
        "image_alt_text": {"type": ["string", "null"]},
    },
    "additionalProperties": True,
}


REWRITE_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "ArticleRewrite",
    "type": "object",
    "required": ["title", "summary", "content"],
    "properties": {
        "title": {"type": "string", "minLength": 8, "maxLength": 180},
        "summary": {"type": "string", "minLength": 80, "maxLength": 700},
        "content": {"type": "string", "minLength": 800, "maxLength": 9000},
    },
    "additionalProperties": True,
}


TRANSLATION_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "BatchTranslation",
    "type": "object",
    "required": ["translations"],
    "properties": {
        "translations": {"type": "array", "items": {"type": "string"}},
    },
    "additionalProperties": True,
}


_VALIDATORS = {
    "classification": Draft202012Validator(CLASSIFICATION_SCHEMA),
    "rewrite": Draft202012Validator(REWRITE_SCHEMA),
    "translation": Draft202012Validator(TRANSLATION_SCHEMA),
}


def validate_payload(kind: str, payload: Dict[str, Any]) -> List[str]:
    """Return a list of human-readable validation errors (empty means valid)."""
    validator = _VALIDATORS[kind]
    errors = []
    for e in sorted(validator.iter_errors(payload), key=lambda x: list(x.path)):
        path = ".".join(str(p) for p in e.path) if e.path else "<root>"
        errors.append(f"{path}: {e.message}")
    return errors
