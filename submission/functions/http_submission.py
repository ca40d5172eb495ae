"""
HTTP-Triggered Azure Function for TI Indicator Submission

Accepts one indicator record (JSON object) or a batch (JSON array, or
{"indicators": [...]}) and submits each to Graph Security
"""
import logging
import json
from typing import Dict

import azure.functions as func

from auth.token_provider import token_provider_from_env
from builder.request_builder import IndicatorRequestBuilder
from connectors.exceptions import AuthError, ConfigurationError
from utils.record_reader import records_from_json


def main(req: func.HttpRequest) -> func.HttpResponse:
    """
    HTTP-triggered function for indicator submission

    Query parameters:
        - version: Graph API version (beta; v1 is rejected)

    Returns:
        JSON response with per-record results. 200 when every record was
        submitted, 207 when some failed, 400 for a malformed request, 401
        when no auth header could be acquired (with the results of any
        records submitted before that).
    """
    logging.info('HTTP trigger function processed a submission request.')

    version = req.params.get('version', 'beta')

    try:
        records = records_from_json(req.get_json())
    except ValueError as e:
        return _json_response({'error': f'Invalid request body: {e}'}, 400)

    try:
        builder = IndicatorRequestBuilder(token_provider_from_env(), api_version=version)
        results = builder.submit_batch(records)

    except ConfigurationError as e:
        logging.error(f"Configuration error: {e}")
        return _json_response({'error': str(e)}, 400)

    except AuthError as e:
        logging.error(f"Authentication failed: {e}")
        return _json_response(
            {
                'error': str(e),
                'summary': IndicatorRequestBuilder.summarize(e.completed),
                'results': [result.to_dict() for result in e.completed]
            },
            401
        )

    summary = IndicatorRequestBuilder.summarize(results)
    logging.info(f"Submitted {summary['succeeded']} of {summary['total']} indicators")

    return _json_response(
        {
            'summary': summary,
            'results': [result.to_dict() for result in results]
        },
        200 if summary['failed'] == 0 else 207
    )


def _json_response(body: Dict, status_code: int) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(body),
        status_code=status_code,
        mimetype='application/json'
    )
