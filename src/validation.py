"""
Schema Validation - JSON Schema validation of resource specs.

Each resource plugin publishes a Draft 7 schema for its spec. Specs are
checked here before any remote call is made.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Tuple

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError
from jsonschema.exceptions import ValidationError as SchemaValidationError

logger = logging.getLogger(__name__)


def validate_schema(schema: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate that a plugin schema is itself a valid Draft 7 JSON Schema.

    Args:
        schema: The schema to check

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        Draft7Validator.check_schema(schema)
        return True, None
    except SchemaError as e:
        return False, f"Invalid schema: {e.message}"


def format_errors(errors: Iterable[SchemaValidationError]) -> str:
    """Join validation errors as 'path: message' pairs."""
    messages = []
    for error in errors:
        path = ".".join(str(p) for p in error.absolute_path) or "(root)"
        messages.append(f"{path}: {error.message}")
    return "; ".join(messages)


def validate_spec_against_schema(
    spec: Any, schema: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Validate a resource spec against a plugin schema.

    Args:
        spec: The desired-state spec to validate
        schema: The JSON Schema to validate against

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(spec, dict):
        return False, "(root): spec must be an object"

    try:
        validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)
        errors = list(validator.iter_errors(spec))
    except SchemaError as e:
        logger.error(f"Plugin schema is invalid: {e.message}")
        return False, f"Validation failed: {e.message}"

    if not errors:
        return True, None

    return False, format_errors(errors)
