"""
Indicator Request Builder

Turns flat indicator parameters (CLI flags, CSV rows, JSON objects) into a
validated ThreatIndicator and submits it to Graph Security with one POST.

Flow per indicator: validating -> submitting -> completed. Configuration
and auth failures are raised; validation, transport and API failures are
returned inside the IndicatorResult so that batches keep going.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
from dataclasses import dataclass
from enum import Enum
import logging
import os

from auth.token_provider import AuthTokenProvider
from connectors.exceptions import (
    ApiError,
    AuthError,
    IndicatorSubmissionError,
    IndicatorValidationError,
    TransportError
)
from connectors.graph_security_connector import ApiVersion, GraphSecurityConnector, parse_api_version
from models.threat_indicator import (
    ObservableCategory,
    ThreatIndicator,
    match_enum,
    partition_fields,
    resolve_category
)
from utils.schema_validator import SchemaValidator


logger = logging.getLogger(__name__)


class SubmissionStage(str, Enum):
    """Where an indicator's processing ended"""
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    COMPLETED = "completed"


@dataclass
class IndicatorResult:
    """Outcome of building and submitting one indicator"""
    success: bool
    stage: SubmissionStage
    index: Optional[int] = None
    payload: Optional[Dict[str, Any]] = None
    response: Optional[Dict[str, Any]] = None
    error: Optional[IndicatorSubmissionError] = None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error is not None else None

    @property
    def status_code(self) -> Optional[int]:
        if isinstance(self.error, ApiError):
            return self.error.status_code
        return None

    def raise_for_error(self) -> None:
        """Re-raise the captured error, if any"""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view used by the CLI and the HTTP function"""
        data: Dict[str, Any] = {
            'index': self.index,
            'success': self.success,
            'stage': self.stage.value
        }
        if self.response is not None:
            data['response'] = self.response
        if self.error is not None:
            error: Dict[str, Any] = {'kind': self.error.kind, 'message': str(self.error)}
            if isinstance(self.error, ApiError):
                error.update({
                    'status_code': self.error.status_code,
                    'reason': self.error.reason,
                    'body': self.error.body
                })
            if isinstance(self.error, IndicatorValidationError):
                error['errors'] = self.error.errors
            data['error'] = error
        return data


def build_indicator(
    parameters: Mapping[str, Any],
    category: Union[str, ObservableCategory, None] = None,
    validator: Optional[SchemaValidator] = None
) -> ThreatIndicator:
    """
    Validate flat parameters and build the indicator without submitting it

    Args:
        parameters: Flat attributes keyed by wire or snake_case name
        category: Expected observable category; deduced when omitted
        validator: Schema validator to use (strict)

    Returns:
        Validated ThreatIndicator

    Raises:
        IndicatorValidationError: Unknown attributes, mixed or empty
            observable groups, missing required attributes, invalid enum
            values or out-of-range numbers
    """
    base, groups, unknown = partition_fields(dict(parameters))
    errors = [f"{name}: Unknown attribute" for name in unknown]

    requested = None
    if category is not None:
        try:
            requested = ObservableCategory(match_enum(ObservableCategory, category))
        except ValueError:
            valid = [c.value for c in ObservableCategory]
            errors.append(f"category: Invalid category {category!r}. Must be one of {valid}")

    resolved = None
    try:
        resolved = resolve_category(groups, requested)
    except ValueError as e:
        errors.append(f"observable: {e}")

    if errors:
        logger.warning(f"Indicator rejected: {errors}")
        raise IndicatorValidationError(f"Validation failed: {'; '.join(errors)}", errors=errors)

    data = dict(base)
    data['observable'] = {'category': resolved.value, **groups[resolved]}

    validator = validator or SchemaValidator(strict=True)
    return validator.validate(data, ThreatIndicator).validated_data


class IndicatorRequestBuilder:
    """
    Validate indicator parameters, shape the payload and submit it

    Example:
        builder = IndicatorRequestBuilder(StaticTokenProvider(token))
        result = builder.build_and_submit({
            "action": "block",
            "description": "File hash for cryptominer.exe",
            ...
            "fileHashType": "sha256",
            "fileHashValue": "2D6BDFB341BE3A6234B24742377F93AA7C7CFB0D9FD64EFA9282C87852E57085"
        })
    """

    def __init__(
        self,
        token_provider: AuthTokenProvider,
        api_version: Union[str, ApiVersion, None] = ApiVersion.BETA,
        base_url: Optional[str] = None
    ):
        """
        Initialize builder

        Args:
            token_provider: Supplies the Authorization header per submission
            api_version: Default API version for submissions
            base_url: Graph root override (tests, national clouds)

        Raises:
            ConfigurationError: If the default API version is not supported
        """
        self.token_provider = token_provider
        self.api_version = parse_api_version(api_version or os.getenv('GRAPH_API_VERSION', 'beta'))
        self.base_url = base_url
        self.validator = SchemaValidator(strict=True)
        self.logger = logging.getLogger(self.__class__.__name__)
        self._connectors: Dict[ApiVersion, GraphSecurityConnector] = {}

    def _connector_for(self, api_version: Union[str, ApiVersion, None]) -> GraphSecurityConnector:
        """
        Get (or create) the connector for an API version

        Raises:
            ConfigurationError: If the version is not supported
        """
        version = parse_api_version(api_version) if api_version is not None else self.api_version
        if version not in self._connectors:
            self._connectors[version] = GraphSecurityConnector(
                token_provider=self.token_provider,
                api_version=version,
                base_url=self.base_url
            )
        return self._connectors[version]

    def build_indicator(
        self,
        parameters: Mapping[str, Any],
        category: Union[str, ObservableCategory, None] = None
    ) -> ThreatIndicator:
        """Validate parameters and build the indicator without submitting it"""
        return build_indicator(parameters, category, self.validator)

    def build_and_submit(
        self,
        parameters: Mapping[str, Any],
        category: Union[str, ObservableCategory, None] = None,
        api_version: Union[str, ApiVersion, None] = None,
        index: Optional[int] = None
    ) -> IndicatorResult:
        """
        Validate, shape and POST one indicator

        Args:
            parameters: Flat attributes keyed by wire or snake_case name
            category: Expected observable category; deduced when omitted
            api_version: Overrides the builder's default version
            index: Position of the record within a batch

        Returns:
            IndicatorResult (failed results carry the error)

        Raises:
            ConfigurationError: Unsupported API version (nothing is sent)
            AuthError: Authorization header could not be acquired
        """
        connector = self._connector_for(api_version)

        self.logger.debug(f"Validating indicator (index={index})")
        try:
            indicator = self.build_indicator(parameters, category)
        except IndicatorValidationError as e:
            return IndicatorResult(
                success=False,
                stage=SubmissionStage.VALIDATING,
                index=index,
                error=e
            )

        return self._submit(connector, indicator, index)

    def submit(
        self,
        indicator: ThreatIndicator,
        api_version: Union[str, ApiVersion, None] = None,
        index: Optional[int] = None
    ) -> IndicatorResult:
        """
        POST an already-built indicator

        Raises:
            ConfigurationError: Unsupported API version (nothing is sent)
            AuthError: Authorization header could not be acquired
        """
        return self._submit(self._connector_for(api_version), indicator, index)

    def _submit(
        self,
        connector: GraphSecurityConnector,
        indicator: ThreatIndicator,
        index: Optional[int]
    ) -> IndicatorResult:
        payload = indicator.to_payload()

        self.logger.debug(f"Submitting {indicator.category.value} indicator (index={index})")
        try:
            response = connector.submit_indicator(payload)
        except (TransportError, ApiError) as e:
            self.logger.error(f"Indicator submission failed (index={index}): {e.kind}: {e}")
            return IndicatorResult(
                success=False,
                stage=SubmissionStage.SUBMITTING,
                index=index,
                payload=payload,
                error=e
            )

        return IndicatorResult(
            success=True,
            stage=SubmissionStage.COMPLETED,
            index=index,
            payload=payload,
            response=response
        )

    def submit_batch(
        self,
        records: Iterable[Mapping[str, Any]],
        api_version: Union[str, ApiVersion, None] = None,
        category: Union[str, ObservableCategory, None] = None
    ) -> List[IndicatorResult]:
        """
        Build and submit one indicator per record, sequentially

        A failed record never stops the ones after it. An auth failure
        aborts the whole run.

        Args:
            records: Flat attribute mappings, e.g. CSV rows
            api_version: Overrides the builder's default version
            category: Expected observable category for every record

        Returns:
            One IndicatorResult per record, in input order

        Raises:
            ConfigurationError: Unsupported API version (nothing is sent)
            AuthError: Authorization header could not be acquired; its
                `completed` holds the results gathered before the abort
        """
        self._connector_for(api_version)

        results: List[IndicatorResult] = []
        try:
            for index, record in enumerate(records):
                results.append(self.build_and_submit(
                    record, category=category, api_version=api_version, index=index
                ))
        except AuthError as e:
            self.logger.error(f"Batch aborted after {len(results)} records: {e}")
            e.completed = results
            raise

        summary = self.summarize(results)
        self.logger.info(
            f"Batch complete: {summary['succeeded']}/{summary['total']} indicators submitted"
        )
        return results

    @staticmethod
    def summarize(results: List[IndicatorResult]) -> Dict[str, Any]:
        """
        Get summary statistics for a batch

        Returns:
            Dictionary with total, succeeded, failed and per-kind failure counts
        """
        failures: Dict[str, int] = {}
        for result in results:
            if not result.success:
                failures[result.error_kind] = failures.get(result.error_kind, 0) + 1

        succeeded = sum(1 for r in results if r.success)
        return {
            'total': len(results),
            'succeeded': succeeded,
            'failed': len(results) - succeeded,
            'failures_by_kind': failures
        }
