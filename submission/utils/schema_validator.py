"""
Schema Validator Utility

Validates indicator data against Pydantic schemas
Reports each problem as "field: message" using the wire attribute name
"""
from typing import List, Dict, Any, Type, Optional
from pydantic import BaseModel, ValidationError
import logging
from dataclasses import dataclass

from connectors.exceptions import IndicatorValidationError


# Location parts that only describe nesting, not the attribute
_STRUCTURAL_LOCS = {'observable', 'Email', 'File', 'Network'}


@dataclass
class ValidationResult:
    """Result of schema validation"""
    is_valid: bool
    errors: List[str]
    validated_data: Optional[BaseModel]


def format_validation_errors(error: ValidationError) -> List[str]:
    """
    Turn a Pydantic ValidationError into "field: message" strings

    Args:
        error: Pydantic ValidationError

    Returns:
        One entry per error, e.g. "expirationDateTime: Field required"
    """
    messages = []
    for err in error.errors():
        parts = [str(part) for part in err['loc'] if part not in _STRUCTURAL_LOCS]
        field = ".".join(parts) if parts else "indicator"
        message = err['msg']
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        messages.append(f"{field}: {message}")
    return messages


class SchemaValidator:
    """
    Validates data against Pydantic schemas

    Provides detailed error reporting
    """

    def __init__(self, strict: bool = False):
        """
        Initialize schema validator

        Args:
            strict: If True, raise IndicatorValidationError on validation failure
        """
        self.strict = strict
        self.logger = logging.getLogger(self.__class__.__name__)

    def validate(
        self,
        data: Dict[str, Any],
        schema: Type[BaseModel]
    ) -> ValidationResult:
        """
        Validate data against Pydantic schema

        Args:
            data: Data dictionary to validate
            schema: Pydantic model class to validate against

        Returns:
            ValidationResult with validation status and errors

        Raises:
            IndicatorValidationError: If strict=True and validation fails
        """
        try:
            validated = schema.model_validate(data)

            return ValidationResult(
                is_valid=True,
                errors=[],
                validated_data=validated
            )

        except ValidationError as e:
            error_messages = format_validation_errors(e)

            self.logger.warning(
                f"Schema validation failed for {schema.__name__}: {error_messages}"
            )

            if self.strict:
                raise IndicatorValidationError(
                    f"Validation failed: {'; '.join(error_messages)}",
                    errors=error_messages
                ) from e

            return ValidationResult(
                is_valid=False,
                errors=error_messages,
                validated_data=None
            )
