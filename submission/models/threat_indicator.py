"""
Pydantic model for Microsoft Graph Security TI indicators

A ThreatIndicator carries the base attributes plus exactly one observable
(email, file or network). On the wire the observable is flattened into the
same JSON object as the base attributes.
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator, field_serializer, model_validator
from typing import Any, Dict, List, Literal, Optional, Tuple, Type, Union
from datetime import date, datetime, time, timezone
from enum import Enum
import re


INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1
INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1

_FRACTION_PATTERN = re.compile(r"\.(\d+)")


class IndicatorAction(str, Enum):
    """Action to apply when the indicator matches"""
    UNKNOWN = "unknown"
    ALLOW = "allow"
    BLOCK = "block"
    ALERT = "alert"


class ThreatType(str, Enum):
    """Kind of threat the indicator describes"""
    BOTNET = "Botnet"
    C2 = "C2"
    CRYPTO_MINING = "CryptoMining"
    DARKNET = "Darknet"
    DDOS = "DDoS"
    MALICIOUS_URL = "MaliciousUrl"
    MALWARE = "Malware"
    PHISHING = "Phishing"
    PROXY = "Proxy"
    PUA = "PUA"


class TlpLevel(str, Enum):
    """Traffic Light Protocol sharing level"""
    UNKNOWN = "unknown"
    WHITE = "white"
    GREEN = "green"
    AMBER = "amber"
    RED = "red"


class DiamondModel(str, Enum):
    """Diamond Model vertex the indicator belongs to"""
    UNKNOWN = "unknown"
    ADVERSARY = "adversary"
    CAPABILITY = "capability"
    INFRASTRUCTURE = "infrastructure"
    VICTIM = "victim"


class FileHashType(str, Enum):
    UNKNOWN = "unknown"
    SHA1 = "sha1"
    SHA256 = "sha256"
    MD5 = "md5"
    AUTHENTICODE_HASH256 = "authenticodeHash256"
    LS_HASH = "lsHash"
    CTPH = "ctph"


class TargetProduct(str, Enum):
    AZURE_SENTINEL = "Azure Sentinel"


class ObservableCategory(str, Enum):
    """Observable groups; at most one may be populated per indicator"""
    EMAIL = "Email"
    FILE = "File"
    NETWORK = "Network"


def match_enum(enum_cls: Type[Enum], value: Any) -> Any:
    """Map a case-insensitive string onto the canonical enum value"""
    if isinstance(value, str):
        lowered = value.strip().lower()
        for member in enum_cls:
            if member.value.lower() == lowered:
                return member.value
    return value


def split_string_list(value: Any) -> Any:
    """
    Normalize a comma-delimited string or a sequence into a list of strings

    Items of a sequence may themselves be comma-delimited, e.g. repeated CLI
    flags. Order is preserved and duplicates are kept. Blank items are dropped.
    """
    if value is None:
        return None
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if isinstance(item, str):
                items.extend(item.split(","))
            elif item is not None:
                items.append(item)
    else:
        return value
    cleaned = [str(item).strip() for item in items if str(item).strip()]
    return cleaned or None


def _six_digit_fraction(match: "re.Match") -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_timestamp(value: Any) -> Any:
    """
    Accept datetime, date or ISO-8601 text; naive values are taken as UTC

    Fractions are padded or cut to six digits; Graph returns seven.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = _FRACTION_PATTERN.sub(_six_digit_fraction, value.strip())
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}")
    else:
        return value

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Render a timestamp the way Graph expects it (UTC, trailing Z)"""
    if value is None:
        return None
    value = value.astimezone(timezone.utc)
    if value.microsecond:
        return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def is_blank(value: Any) -> bool:
    """True for values that count as "not supplied" (None, blank text, empty list)"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


class _WireModel(BaseModel):
    """Shared config: wire names as aliases, snake_case names also accepted"""

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        extra='forbid',
        str_strip_whitespace=True
    )

    @model_validator(mode='before')
    @classmethod
    def drop_blank_values(cls, data):
        """Treat blank values as not supplied"""
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if not is_blank(value)}
        return data

    @classmethod
    def wire_names(cls) -> Dict[str, str]:
        """
        Map every accepted input name to its wire name

        Returns:
            {"fileHashType": "fileHashType", "hash_type": "fileHashType", ...}
        """
        names = {}
        for name, info in cls.model_fields.items():
            if name in ('category', 'observable'):
                continue
            wire = info.alias or name
            names[name] = wire
            names[wire] = wire
        return names


class _Observable(_WireModel):
    """Base for the category-specific observable groups"""

    category: str

    @model_validator(mode='after')
    def require_one_field(self):
        """An observable group must carry at least one value"""
        populated = [
            name for name in type(self).model_fields
            if name != 'category' and getattr(self, name) is not None
        ]
        if not populated:
            raise ValueError(
                f"At least one {self.category} observable attribute must be supplied"
            )
        return self

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True, exclude_none=True, exclude={'category'})


class EmailObservable(_Observable):
    """Email observable attributes"""

    category: Literal["Email"] = "Email"

    encoding: Optional[str] = Field(default=None, alias="emailEncoding")
    language: Optional[str] = Field(default=None, alias="emailLanguage")
    recipient: Optional[str] = Field(default=None, alias="emailRecipient")
    sender_address: Optional[str] = Field(default=None, alias="emailSenderAddress")
    sender_name: Optional[str] = Field(default=None, alias="emailSenderName")
    source_domain: Optional[str] = Field(default=None, alias="emailSourceDomain")
    source_ip_address: Optional[str] = Field(default=None, alias="emailSourceIpAddress")
    subject: Optional[str] = Field(default=None, alias="emailSubject")
    x_mailer: Optional[str] = Field(default=None, alias="emailXMailer")


class FileObservable(_Observable):
    """File observable attributes"""

    category: Literal["File"] = "File"

    compile_date_time: Optional[datetime] = Field(default=None, alias="fileCompileDateTime")
    created_date_time: Optional[datetime] = Field(default=None, alias="fileCreatedDateTime")
    hash_type: Optional[FileHashType] = Field(default=None, alias="fileHashType")
    hash_value: Optional[str] = Field(default=None, alias="fileHashValue")
    mutex_name: Optional[str] = Field(default=None, alias="fileMutexName")
    name: Optional[str] = Field(default=None, alias="fileName")
    packer: Optional[str] = Field(default=None, alias="filePacker")
    path: Optional[str] = Field(default=None, alias="filePath")
    size: Optional[int] = Field(default=None, ge=INT64_MIN, le=INT64_MAX, alias="fileSize")
    type: Optional[str] = Field(default=None, alias="fileType")

    @field_validator('compile_date_time', 'created_date_time', mode='before')
    @classmethod
    def coerce_timestamp(cls, v):
        return parse_timestamp(v)

    @field_validator('hash_type', mode='before')
    @classmethod
    def coerce_hash_type(cls, v):
        return match_enum(FileHashType, v)

    @field_serializer('compile_date_time', 'created_date_time')
    def serialize_timestamp(self, value: Optional[datetime]):
        return format_timestamp(value)


class NetworkObservable(_Observable):
    """Network observable attributes"""

    category: Literal["Network"] = "Network"

    domain_name: Optional[str] = Field(default=None, alias="domainName")
    cidr_block: Optional[str] = Field(default=None, alias="networkCidrBlock")
    destination_asn: Optional[int] = Field(default=None, ge=INT32_MIN, le=INT32_MAX, alias="networkDestinationAsn")
    destination_cidr_block: Optional[str] = Field(default=None, alias="networkDestinationCidrBlock")
    destination_ipv4: Optional[str] = Field(default=None, alias="networkDestinationIPv4")
    destination_ipv6: Optional[str] = Field(default=None, alias="networkDestinationIPv6")
    destination_port: Optional[int] = Field(default=None, ge=INT32_MIN, le=INT32_MAX, alias="networkDestinationPort")
    ipv4: Optional[str] = Field(default=None, alias="networkIPv4")
    ipv6: Optional[str] = Field(default=None, alias="networkIPv6")
    port: Optional[int] = Field(default=None, ge=INT32_MIN, le=INT32_MAX, alias="networkPort")
    protocol: Optional[int] = Field(default=None, ge=INT32_MIN, le=INT32_MAX, alias="networkProtocol")
    source_asn: Optional[int] = Field(default=None, ge=INT32_MIN, le=INT32_MAX, alias="networkSourceAsn")
    source_cidr_block: Optional[str] = Field(default=None, alias="networkSourceCidrBlock")
    source_ipv4: Optional[str] = Field(default=None, alias="networkSourceIPv4")
    source_ipv6: Optional[str] = Field(default=None, alias="networkSourceIPv6")
    source_port: Optional[int] = Field(default=None, ge=INT32_MIN, le=INT32_MAX, alias="networkSourcePort")
    url: Optional[str] = Field(default=None, alias="url")
    user_agent: Optional[str] = Field(default=None, alias="userAgent")


OBSERVABLE_MODELS: Dict[ObservableCategory, Type[_Observable]] = {
    ObservableCategory.EMAIL: EmailObservable,
    ObservableCategory.FILE: FileObservable,
    ObservableCategory.NETWORK: NetworkObservable,
}


class ThreatIndicator(_WireModel):
    """
    Threat intelligence indicator as submitted to Graph Security

    Unsupplied optional attributes stay None and are left out of the payload.
    """

    action: IndicatorAction = Field(..., description="Action to apply on match")
    description: str = Field(..., min_length=1, max_length=100, description="Short description, max 100 chars")
    expiration_date_time: datetime = Field(..., alias="expirationDateTime")
    target_product: TargetProduct = Field(..., alias="targetProduct")
    threat_type: ThreatType = Field(..., alias="threatType")
    tlp_level: TlpLevel = Field(..., alias="tlpLevel")

    activity_group_names: Optional[List[str]] = Field(default=None, alias="activityGroupNames")
    additional_information: Optional[str] = Field(default=None, alias="additionalInformation")
    confidence: Optional[int] = Field(default=None, ge=0, le=100, description="Confidence score 0-100")
    diamond_model: Optional[DiamondModel] = Field(default=None, alias="diamondModel")
    external_id: Optional[str] = Field(default=None, alias="externalId")
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    kill_chain: Optional[List[str]] = Field(default=None, alias="killChain")
    known_false_positives: Optional[str] = Field(default=None, alias="knownFalsePositives")
    last_reported_date_time: Optional[datetime] = Field(default=None, alias="lastReportedDateTime")
    malware_family_names: Optional[List[str]] = Field(default=None, alias="malwareFamilyNames")
    passive_only: Optional[bool] = Field(default=None, alias="passiveOnly")
    severity: Optional[int] = Field(default=None, ge=0, le=5, description="Severity 0-5")
    tags: Optional[List[str]] = Field(default=None)

    observable: Union[EmailObservable, FileObservable, NetworkObservable] = Field(
        ...,
        discriminator='category'
    )

    @field_validator('action', mode='before')
    @classmethod
    def coerce_action(cls, v):
        return match_enum(IndicatorAction, v)

    @field_validator('threat_type', mode='before')
    @classmethod
    def coerce_threat_type(cls, v):
        return match_enum(ThreatType, v)

    @field_validator('tlp_level', mode='before')
    @classmethod
    def coerce_tlp_level(cls, v):
        return match_enum(TlpLevel, v)

    @field_validator('diamond_model', mode='before')
    @classmethod
    def coerce_diamond_model(cls, v):
        return match_enum(DiamondModel, v)

    @field_validator('target_product', mode='before')
    @classmethod
    def coerce_target_product(cls, v):
        return match_enum(TargetProduct, v)

    @field_validator('expiration_date_time', 'last_reported_date_time', mode='before')
    @classmethod
    def coerce_timestamp(cls, v):
        return parse_timestamp(v)

    @field_validator('activity_group_names', 'kill_chain', 'malware_family_names', 'tags', mode='before')
    @classmethod
    def coerce_string_list(cls, v):
        return split_string_list(v)

    @field_serializer('expiration_date_time', 'last_reported_date_time')
    def serialize_timestamp(self, value: Optional[datetime]):
        return format_timestamp(value)

    @property
    def category(self) -> ObservableCategory:
        return ObservableCategory(self.observable.category)

    def to_payload(self) -> Dict[str, Any]:
        """
        Flatten the indicator into the Graph request body

        Returns:
            Base attributes plus the observable's attributes, wire names,
            with every unsupplied attribute omitted
        """
        payload = self.model_dump(mode='json', by_alias=True, exclude_none=True, exclude={'observable'})
        payload.update(self.observable.to_payload())
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ThreatIndicator":
        """
        Parse a flat wire payload (or a Graph response) back into a model

        Keys that are not indicator attributes (id, ingestedDateTime, ...)
        are ignored.

        Raises:
            ValueError: If the payload mixes observable categories or has none
            pydantic.ValidationError: If attribute values are invalid
        """
        base, groups, _ = partition_fields(payload)
        category = resolve_category(groups)
        data = dict(base)
        data['observable'] = {'category': category.value, **groups[category]}
        return cls.model_validate(data)


BASE_FIELDS = ThreatIndicator.wire_names()
OBSERVABLE_FIELDS: Dict[ObservableCategory, Dict[str, str]] = {
    category: model.wire_names() for category, model in OBSERVABLE_MODELS.items()
}


def partition_fields(
    parameters: Dict[str, Any]
) -> Tuple[Dict[str, Any], Dict[ObservableCategory, Dict[str, Any]], List[str]]:
    """
    Split flat parameters into base attributes and observable groups

    Blank values are skipped. Names may be wire names or snake_case names.

    Returns:
        (base attributes, {category: attributes}, unknown names), all keyed
        by wire name
    """
    base: Dict[str, Any] = {}
    groups: Dict[ObservableCategory, Dict[str, Any]] = {}
    unknown: List[str] = []

    for key, value in parameters.items():
        if is_blank(value):
            continue
        if key in BASE_FIELDS:
            base[BASE_FIELDS[key]] = value
            continue
        for category, names in OBSERVABLE_FIELDS.items():
            if key in names:
                groups.setdefault(category, {})[names[key]] = value
                break
        else:
            unknown.append(key)

    return base, groups, unknown


def resolve_category(
    groups: Dict[ObservableCategory, Dict[str, Any]],
    requested: Optional[ObservableCategory] = None
) -> ObservableCategory:
    """
    Pick the single observable category that was populated

    Raises:
        ValueError: If no group or more than one group is populated, or the
            populated group disagrees with the requested one
    """
    populated = [category for category in ObservableCategory if groups.get(category)]

    if len(populated) > 1:
        names = ", ".join(category.value for category in populated)
        raise ValueError(f"Observable categories cannot be combined: {names}")

    if requested is not None:
        requested = ObservableCategory(requested)
        if populated and populated[0] != requested:
            raise ValueError(
                f"{populated[0].value} attributes supplied for a {requested.value} indicator"
            )
        if not populated:
            raise ValueError(f"At least one {requested.value} observable attribute must be supplied")
        return requested

    if not populated:
        raise ValueError("At least one email, file or network observable attribute must be supplied")

    return populated[0]
