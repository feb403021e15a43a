"""Tools for validating untrusted JSON against an OpenAPI schema.

Like the rest of the REST code, this works on plain JSON objects. The
schemas live in schemas.yaml next to this file, and are loaded once on
import.
"""
import logging
from pathlib import Path
from typing import Any, Dict

import jsonschema
from openapi_schema_validator import OAS30Validator
from ruamel.yaml import YAML

from kumitate.definitions.errors import (
        InconsistentResponseError, ValidationError)


logger = logging.getLogger(__name__)


def _create_validators() -> Dict[str, OAS30Validator]:
    schemas_file = Path(__file__).parent / 'schemas.yaml'
    with open(schemas_file, 'r') as f:
        schemas = YAML(typ='safe').load(f)

    validators = dict()     # type: Dict[str, OAS30Validator]
    for schema_type in schemas['components']['schemas']:
        validators[schema_type] = OAS30Validator(
                schemas['components']['schemas'][schema_type])
    return validators


_validators = _create_validators()


def validate_json(class_: str, user_input: Any) -> None:
    """Validates untrusted JSON against a schema class definition.

    Args:
        class_: The name of the class from the schema to validate
            against.
        user_input: Untrusted user input, JSON objects.

    Raises:
        KeyError: If the class is not available for validation.
        ValidationError: If the input was invalid.
    """
    try:
        _validators[class_].validate(user_input)
    except jsonschema.ValidationError as e:
        raise ValidationError(f'Invalid {class_}: {e.message}') from e


def check_json(class_: str, user_input: Any, strict: bool = False) -> None:
    """Checks a response from the service against the schema.

    In non-strict mode, a mismatch is only logged, so that additions
    to the service's responses do not break clients.

    Args:
        class_: The name of the class from the schema to check
            against.
        user_input: The parsed response.
        strict: Whether to raise on a mismatch.

    Raises:
        InconsistentResponseError: If strict and the input is invalid.
    """
    try:
        validate_json(class_, user_input)
    except ValidationError as e:
        if strict:
            raise InconsistentResponseError(str(e)) from e
        logger.warning(
                f'The service responded with data that does not match'
                f' the expected schema: {e}')
