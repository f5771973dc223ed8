import os
import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple, Optional
from loguru import logger

DEFAULT_SEGMENT_KEY = "default_segment"

SEGMENT_MAPPING = {
    "CRO": "SEG07ootjebf6hm231767941287541",
    "Performance": "SEGtgewk86jmjb31767941272012",
    DEFAULT_SEGMENT_KEY: "SEGplj45zsru74b1767770566946",
}

# Tested in order; the first keyword found in the event name wins
SEGMENT_KEYWORDS = (
    ("cro", "CRO"),
    ("performance", "Performance"),
)

FORM_MAPPINGS = {
    "CRO": {
        "city": ["City", "city"],
        "address": ["Address", "address"],
    },
    "Performance": {
        "city": ["City", "city"],
        "address": ["Address", "address"],
    },
}

GENERIC_FORM_FIELDS = {
    "city": ["City", "city"],
    "address": ["Address", "address"],
}

SEGMENT_STRATEGIES = ("keyword", "exact")


def _freeze_fields(fields: Mapping[str, list]) -> Mapping[str, Tuple[str, ...]]:
    return MappingProxyType({name: tuple(keys) for name, keys in fields.items()})


def _freeze_forms(forms: Mapping[str, Mapping[str, list]]) -> Mapping[str, Mapping[str, Tuple[str, ...]]]:
    return MappingProxyType({segment: _freeze_fields(fields) for segment, fields in forms.items()})


@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration, built once at startup."""
    teleforce_api_url: str = ""
    teleforce_account_id: str = ""
    teleforce_timeout: float = 10.0

    calendly_token: str = ""
    calendly_api_base: str = "https://api.calendly.com"
    calendly_timeout: float = 10.0

    signing_key: str = ""
    verify_signature: bool = False
    signature_tolerance: int = 0

    segment_strategy: str = "keyword"
    exclude_consumed_answers: bool = True
    mobile_from_answers: bool = True

    log_file: str = "logs/app.log"
    port: int = 3000

    segments: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(dict(SEGMENT_MAPPING)))
    keywords: Tuple[Tuple[str, str], ...] = SEGMENT_KEYWORDS
    form_fields: Mapping[str, Mapping[str, Tuple[str, ...]]] = field(
        default_factory=lambda: _freeze_forms(FORM_MAPPINGS)
    )
    generic_form_fields: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: _freeze_fields(GENERIC_FORM_FIELDS)
    )

    @property
    def default_segment_id(self) -> str:
        return self.segments.get(DEFAULT_SEGMENT_KEY, "")

    def fields_for(self, segment_key: str) -> Mapping[str, Tuple[str, ...]]:
        """Form-field key lists for a segment, or the generic fallback lists."""
        return self.form_fields.get(segment_key, self.generic_form_fields)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    logger.warning(f"Invalid value for {name}: {value!r}, using {default}")
    return default


def _env_number(name: str, default, cast):
    value = os.getenv(name)
    if not value:
        return default
    try:
        return cast(value)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {value!r}, using {default}")
        return default


def _valid_form_fields(forms: dict, path: str) -> dict:
    """Drop malformed segment entries and key lists from a form_fields override."""
    valid = {}
    for segment, fields in forms.items():
        if not isinstance(fields, dict):
            logger.error(f"Segment config {path}: form_fields[{segment!r}] must be an object, skipped")
            continue
        keys_by_field = {}
        for name, keys in fields.items():
            if not isinstance(keys, list) or not all(isinstance(key, str) for key in keys):
                logger.error(f"Segment config {path}: form_fields[{segment!r}][{name!r}] must be a list of strings, skipped")
                continue
            keys_by_field[name] = keys
        if keys_by_field:
            valid[segment] = keys_by_field
    return valid


def load_segment_tables(path: Optional[str]) -> dict:
    """Load segment/keyword/form-field overrides from a JSON file."""
    if not path:
        return {}
    try:
        with open(path, "r") as f:
            tables = json.load(f)
    except FileNotFoundError:
        logger.warning(f"Segment config not found at {path}, using defaults")
        return {}
    except json.JSONDecodeError:
        logger.error(f"Invalid JSON in segment config {path}, using defaults")
        return {}

    if not isinstance(tables, dict):
        logger.error(f"Segment config {path} must be a JSON object, using defaults")
        return {}

    overrides = {}
    if isinstance(tables.get("segments"), dict):
        segments = dict(SEGMENT_MAPPING)
        for key, segment_id in tables["segments"].items():
            if not isinstance(segment_id, str) or not segment_id:
                logger.error(f"Segment config {path}: segment {key!r} id must be a non-empty string, skipped")
                continue
            segments[str(key)] = segment_id
        overrides["segments"] = MappingProxyType(segments)
    if isinstance(tables.get("keywords"), list):
        overrides["keywords"] = tuple(
            (str(pair[0]).lower(), str(pair[1]))
            for pair in tables["keywords"]
            if isinstance(pair, (list, tuple)) and len(pair) == 2
        )
    if isinstance(tables.get("form_fields"), dict):
        overrides["form_fields"] = _freeze_forms(_valid_form_fields(tables["form_fields"], path))

    logger.info(f"Loaded segment overrides from {path}: {sorted(overrides)}")
    return overrides


def load_settings() -> Settings:
    """Build Settings from the environment (call after load_dotenv)."""
    strategy = os.getenv("SEGMENT_STRATEGY", "keyword").strip().lower()
    if strategy not in SEGMENT_STRATEGIES:
        logger.warning(f"Unknown SEGMENT_STRATEGY {strategy!r}, using 'keyword'")
        strategy = "keyword"

    settings = Settings(
        teleforce_api_url=os.getenv("TELEFORCE_API_URL", ""),
        teleforce_account_id=os.getenv("TELEFORCE_ACCOUNT_ID", ""),
        teleforce_timeout=_env_number("TELEFORCE_TIMEOUT", 10.0, float),
        calendly_token=os.getenv("CALENDLY_ACCESS_TOKEN", ""),
        calendly_api_base=os.getenv("CALENDLY_API_BASE", "https://api.calendly.com").rstrip("/"),
        calendly_timeout=_env_number("CALENDLY_TIMEOUT", 10.0, float),
        signing_key=os.getenv("CALENDLY_WEBHOOK_SIGNING_KEY", ""),
        verify_signature=_env_bool("VERIFY_WEBHOOK_SIGNATURE", False),
        signature_tolerance=_env_number("WEBHOOK_SIGNATURE_TOLERANCE", 0, int),
        segment_strategy=strategy,
        exclude_consumed_answers=_env_bool("EXCLUDE_CONSUMED_ANSWERS", True),
        mobile_from_answers=_env_bool("MOBILE_FROM_ANSWERS", True),
        log_file=os.getenv("LOG_FILE", "logs/app.log"),
        port=_env_number("PORT", 3000, int),
        **load_segment_tables(os.getenv("SEGMENTS_JSON", "./infra/segments.json")),
    )

    if not settings.teleforce_api_url:
        logger.warning("TELEFORCE_API_URL not set, leads cannot be forwarded")
    if settings.verify_signature and not settings.signing_key:
        logger.warning("Signature verification enabled without CALENDLY_WEBHOOK_SIGNING_KEY, all webhooks will be rejected")

    return settings
