"""
Indicator request building and submission
"""
from builder.request_builder import IndicatorRequestBuilder, IndicatorResult, SubmissionStage, build_indicator

__all__ = ['IndicatorRequestBuilder', 'IndicatorResult', 'SubmissionStage', 'build_indicator']
