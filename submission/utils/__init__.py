"""
Utility modules for indicator submission
"""
from utils.schema_validator import SchemaValidator, ValidationResult, format_validation_errors
from utils.record_reader import read_records, records_from_json

__all__ = ['SchemaValidator', 'ValidationResult', 'format_validation_errors', 'read_records', 'records_from_json']
