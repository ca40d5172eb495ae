"""
graph-ti - submit threat intelligence indicators to Microsoft Graph Security

Single indicator from flags:
    graph-ti submit --action block --description "File hash for cryptominer.exe" \\
        --expiration-date-time 2020-01-02 --threat-type CryptoMining --tlp-level red \\
        --file-hash-type sha256 --file-hash-value 2D6B...57085

Batch from a CSV/JSON file whose columns are wire attribute names:
    graph-ti submit --input indicators.csv
"""
import json
import logging
import sys
from typing import Any, Dict, List

import click

from auth.token_provider import AuthTokenProvider, StaticTokenProvider, token_provider_from_env
from builder.request_builder import IndicatorRequestBuilder, IndicatorResult, build_indicator
from connectors.exceptions import AuthError, ConfigurationError, IndicatorValidationError
from connectors.graph_security_connector import parse_api_version
from models.threat_indicator import (
    DiamondModel,
    FileHashType,
    IndicatorAction,
    ObservableCategory,
    TargetProduct,
    ThreatType,
    TlpLevel
)
from utils.record_reader import read_records


def _choice(enum_cls) -> click.Choice:
    return click.Choice([member.value for member in enum_cls], case_sensitive=False)


# (flag, wire name, click type, help)
BASE_OPTIONS = [
    ('--action', 'action', _choice(IndicatorAction), 'Action to apply on match'),
    ('--description', 'description', str, 'Description, at most 100 characters'),
    ('--expiration-date-time', 'expirationDateTime', str, 'Expiry timestamp (ISO-8601)'),
    ('--threat-type', 'threatType', _choice(ThreatType), 'Threat type'),
    ('--tlp-level', 'tlpLevel', _choice(TlpLevel), 'Traffic Light Protocol level'),
    ('--additional-information', 'additionalInformation', str, 'Free-form details'),
    ('--confidence', 'confidence', click.IntRange(0, 100), 'Confidence 0-100'),
    ('--diamond-model', 'diamondModel', _choice(DiamondModel), 'Diamond Model vertex'),
    ('--external-id', 'externalId', str, 'Identifier in the source system'),
    ('--known-false-positives', 'knownFalsePositives', str, 'Known false positive scenarios'),
    ('--last-reported-date-time', 'lastReportedDateTime', str, 'Last seen timestamp (ISO-8601)'),
    ('--severity', 'severity', click.IntRange(0, 5), 'Severity 0-5'),
]

LIST_OPTIONS = [
    ('--activity-group-names', 'activityGroupNames', 'Activity group (repeatable or comma-delimited)'),
    ('--kill-chain', 'killChain', 'Kill chain stage (repeatable or comma-delimited)'),
    ('--malware-family-names', 'malwareFamilyNames', 'Malware family (repeatable or comma-delimited)'),
    ('--tags', 'tags', 'Tag (repeatable or comma-delimited)'),
]

EMAIL_OPTIONS = [
    ('--email-encoding', 'emailEncoding', str, 'Email: text encoding'),
    ('--email-language', 'emailLanguage', str, 'Email: language'),
    ('--email-recipient', 'emailRecipient', str, 'Email: recipient address'),
    ('--email-sender-address', 'emailSenderAddress', str, 'Email: sender address'),
    ('--email-sender-name', 'emailSenderName', str, 'Email: sender display name'),
    ('--email-source-domain', 'emailSourceDomain', str, 'Email: source domain'),
    ('--email-source-ip-address', 'emailSourceIpAddress', str, 'Email: source IP address'),
    ('--email-subject', 'emailSubject', str, 'Email: subject line'),
    ('--email-x-mailer', 'emailXMailer', str, 'Email: X-Mailer header'),
]

FILE_OPTIONS = [
    ('--file-compile-date-time', 'fileCompileDateTime', str, 'File: compile timestamp'),
    ('--file-created-date-time', 'fileCreatedDateTime', str, 'File: creation timestamp'),
    ('--file-hash-type', 'fileHashType', _choice(FileHashType), 'File: hash algorithm'),
    ('--file-hash-value', 'fileHashValue', str, 'File: hash value'),
    ('--file-mutex-name', 'fileMutexName', str, 'File: mutex name'),
    ('--file-name', 'fileName', str, 'File: name'),
    ('--file-packer', 'filePacker', str, 'File: packer'),
    ('--file-path', 'filePath', str, 'File: path'),
    ('--file-size', 'fileSize', click.IntRange(-2 ** 63, 2 ** 63 - 1), 'File: size in bytes'),
    ('--file-type', 'fileType', str, 'File: type description'),
]

_INT32 = click.IntRange(-2 ** 31, 2 ** 31 - 1)

NETWORK_OPTIONS = [
    ('--domain-name', 'domainName', str, 'Network: domain name'),
    ('--network-cidr-block', 'networkCidrBlock', str, 'Network: CIDR block'),
    ('--network-destination-asn', 'networkDestinationAsn', _INT32, 'Network: destination ASN'),
    ('--network-destination-cidr-block', 'networkDestinationCidrBlock', str, 'Network: destination CIDR block'),
    ('--network-destination-ipv4', 'networkDestinationIPv4', str, 'Network: destination IPv4'),
    ('--network-destination-ipv6', 'networkDestinationIPv6', str, 'Network: destination IPv6'),
    ('--network-destination-port', 'networkDestinationPort', _INT32, 'Network: destination port'),
    ('--network-ipv4', 'networkIPv4', str, 'Network: IPv4 (either direction)'),
    ('--network-ipv6', 'networkIPv6', str, 'Network: IPv6 (either direction)'),
    ('--network-port', 'networkPort', _INT32, 'Network: port (either direction)'),
    ('--network-protocol', 'networkProtocol', _INT32, 'Network: IP protocol number'),
    ('--network-source-asn', 'networkSourceAsn', _INT32, 'Network: source ASN'),
    ('--network-source-cidr-block', 'networkSourceCidrBlock', str, 'Network: source CIDR block'),
    ('--network-source-ipv4', 'networkSourceIPv4', str, 'Network: source IPv4'),
    ('--network-source-ipv6', 'networkSourceIPv6', str, 'Network: source IPv6'),
    ('--network-source-port', 'networkSourcePort', _INT32, 'Network: source port'),
    ('--url', 'url', str, 'Network: URL'),
    ('--user-agent', 'userAgent', str, 'Network: user agent'),
]


def indicator_options(f):
    """Attach one option per indicator attribute"""
    for flag, wire, kind, help_text in reversed(BASE_OPTIONS + EMAIL_OPTIONS + FILE_OPTIONS + NETWORK_OPTIONS):
        f = click.option(flag, wire, type=kind, default=None, help=help_text)(f)
    for flag, wire, help_text in reversed(LIST_OPTIONS):
        f = click.option(flag, wire, multiple=True, help=help_text)(f)
    f = click.option('--active/--inactive', 'isActive', default=None, help='Whether the indicator is active')(f)
    f = click.option('--passive-only/--no-passive-only', 'passiveOnly', default=None,
                     help='Only record matches, never alert or block')(f)
    return f


def _build_token_provider(token: str) -> AuthTokenProvider:
    if token:
        return StaticTokenProvider(token)
    return token_provider_from_env()


def _report(results: List[IndicatorResult]) -> None:
    for result in results:
        if result.success:
            click.echo(json.dumps(result.response))
            continue
        click.echo(f"[{result.index}] {result.error_kind}: {result.error}", err=True)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Debug logging')
def main(verbose: bool):
    """Submit threat intelligence indicators to Microsoft Graph Security"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        stream=sys.stderr
    )


@main.command()
@indicator_options
@click.option('--target-product', 'targetProduct', type=_choice(TargetProduct),
              default=TargetProduct.AZURE_SENTINEL.value, show_default=True, help='Target product')
@click.option('--category', type=_choice(ObservableCategory), default=None,
              help='Observable category; deduced from the attributes when omitted')
@click.option('--input', 'input_path', type=click.Path(exists=True, dir_okay=False),
              help='CSV or JSON file with one indicator per row')
@click.option('--version', 'api_version', type=click.Choice(['v1', 'Beta'], case_sensitive=False),
              default='Beta', show_default=True, help='Graph API version (only Beta is supported)')
@click.option('--token', envvar='GRAPH_ACCESS_TOKEN', default=None, help='Bearer token (or GRAPH_ACCESS_TOKEN)')
@click.option('--dry-run', is_flag=True, help='Validate and print payloads without submitting')
@click.pass_context
def submit(ctx, category, input_path, api_version, token, dry_run, **params):
    """Submit one indicator from flags, or a batch from --input"""
    target_product = params.pop('targetProduct')
    supplied = {key: value for key, value in params.items() if value not in (None, ())}

    if input_path and supplied:
        raise click.UsageError("Indicator flags cannot be combined with --input")

    if input_path:
        records: List[Dict[str, Any]] = [
            {'targetProduct': target_product, **row} for row in read_records(input_path)
        ]
    else:
        records = [{'targetProduct': target_product, **supplied}]

    try:
        parse_api_version(api_version)
    except ConfigurationError as e:
        raise click.UsageError(str(e))

    if dry_run:
        ctx.exit(_dry_run(records, category))

    try:
        builder = IndicatorRequestBuilder(_build_token_provider(token), api_version=api_version)
        if input_path:
            results = builder.submit_batch(records, category=category)
        else:
            results = [builder.build_and_submit(records[0], category=category, index=0)]

    except ConfigurationError as e:
        raise click.UsageError(str(e))

    except AuthError as e:
        _report(e.completed)
        raise click.ClickException(f"Authentication failed: {e}")

    _report(results)
    summary = IndicatorRequestBuilder.summarize(results)
    if len(results) > 1:
        click.echo(f"{summary['succeeded']}/{summary['total']} indicators submitted", err=True)
    ctx.exit(0 if summary['failed'] == 0 else 1)


def _dry_run(records: List[Dict[str, Any]], category) -> int:
    """Validate records locally and print their payloads; returns the exit code"""
    exit_code = 0
    for index, record in enumerate(records):
        try:
            indicator = build_indicator(record, category)
        except IndicatorValidationError as e:
            click.echo(f"[{index}] {e.kind}: {e}", err=True)
            exit_code = 1
            continue
        click.echo(json.dumps(indicator.to_payload()))
    return exit_code


if __name__ == "__main__":
    main()
