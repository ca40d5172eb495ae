"""
Tests for Schema Validator
"""
import pytest

from connectors.exceptions import IndicatorValidationError
from models.schemas import TokenResponseSchema
from models.threat_indicator import ThreatIndicator
from utils.schema_validator import SchemaValidator, ValidationResult


def indicator_data(**overrides):
    data = {
        'action': 'alert',
        'description': 'Phishing sender',
        'expirationDateTime': '2020-01-02T00:00:00Z',
        'targetProduct': 'Azure Sentinel',
        'threatType': 'Phishing',
        'tlpLevel': 'green',
        'observable': {'category': 'Email', 'emailSenderAddress': 'billing@invoices.example.com'}
    }
    data.update(overrides)
    return data


@pytest.mark.unit
class TestSchemaValidator:
    """Test schema validator utility"""

    def test_validate_valid_data(self):
        """Should validate correct data successfully"""
        validator = SchemaValidator()

        result = validator.validate(indicator_data(), ThreatIndicator)

        assert result.is_valid is True
        assert result.errors == []
        assert isinstance(result.validated_data, ThreatIndicator)

    def test_validate_invalid_data(self):
        """Should return errors keyed by wire attribute name"""
        validator = SchemaValidator()

        data = indicator_data(tlpLevel='purple')
        del data['expirationDateTime']
        result = validator.validate(data, ThreatIndicator)

        assert result.is_valid is False
        assert result.validated_data is None
        assert 'expirationDateTime: Field required' in result.errors
        assert any(err.startswith('tlpLevel:') for err in result.errors)

    def test_nested_observable_errors_use_attribute_name(self):
        """Should drop the observable/category nesting from error locations"""
        validator = SchemaValidator()

        data = indicator_data(observable={'category': 'Network', 'networkDestinationPort': 'https'})
        result = validator.validate(data, ThreatIndicator)

        assert any(err.startswith('networkDestinationPort:') for err in result.errors)

    def test_empty_observable_reported(self):
        validator = SchemaValidator()

        result = validator.validate(indicator_data(observable={'category': 'Email'}), ThreatIndicator)

        assert result.errors == ['indicator: At least one Email observable attribute must be supplied']

    def test_strict_mode_raises(self):
        """Should raise IndicatorValidationError in strict mode"""
        validator = SchemaValidator(strict=True)

        with pytest.raises(IndicatorValidationError) as exc_info:
            validator.validate({'token_type': 'Bearer'}, TokenResponseSchema)

        assert exc_info.value.errors == ['access_token: Field required']

    def test_validation_result_dataclass(self):
        result = ValidationResult(is_valid=False, errors=['x: bad'], validated_data=None)

        assert result.errors == ['x: bad']
