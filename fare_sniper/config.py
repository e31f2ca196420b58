from __future__ import annotations

import enum
import json
from datetime import date
from functools import lru_cache
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

import click
from dotenv import load_dotenv
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

DEFAULT_INTERVAL_MIN = 30.0

# Static record key -> TripQuery field.  The keys double as the JSON config
# keys; environment variables use the ``SNIPER_`` spelling.
QUERY_FIELDS: Dict[str, str] = {
    "from": "origin",
    "to": "destination",
    "leaveDate": "departure_date",
    "returnDate": "return_date",
    "passengers": "passengers",
    "departureTimeOfDay": "departure_time_of_day",
    "returnTimeOfDay": "return_time_of_day",
    "dealPriceThreshold": "deal_price_threshold",
    "dealPriceThresholdRoundtrip": "deal_price_threshold_roundtrip",
    "interval": "interval_minutes",
    "scrapeTimeout": "scrape_timeout_minutes",
}
SMS_FIELDS: Dict[str, str] = {
    "twilioAccountSid": "account_sid",
    "twilioAuthToken": "auth_token",
    "twilioPhoneFrom": "phone_from",
    "twilioPhoneTo": "phone_to",
}


class ConfigurationError(ValueError):
    """Trip parameters are missing or invalid."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class TimeOfDay(str, enum.Enum):
    """Departure window filter, valued as the booking site expects it."""

    ALL_DAY = "ALL_DAY"
    BEFORE_NOON = "BEFORE_NOON"
    NOON_TO_SIX = "NOON_TO_6PM"
    AFTER_SIX = "AFTER_6PM"

    @classmethod
    def parse(cls, raw: Any) -> "TimeOfDay":
        if isinstance(raw, cls):
            return raw
        text = str(raw or "").strip().upper().replace(" ", "_")
        if not text:
            return cls.ALL_DAY
        for member in cls:
            if text in (member.name, member.value):
                return member
        raise ValueError(
            f"unknown time of day {raw!r}; "
            f"choose one of {', '.join(m.name for m in cls)}"
        )


class SmsConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    account_sid: str = Field(..., min_length=1)
    auth_token: str = Field(..., min_length=1)
    phone_from: str = Field(..., min_length=1)
    phone_to: str = Field(..., min_length=1)


class TripQuery(BaseModel):
    """Immutable per-run trip parameters."""

    model_config = ConfigDict(frozen=True)

    origin: str
    destination: str
    departure_date: date
    return_date: date
    passengers: int = Field(1, gt=0)
    departure_time_of_day: TimeOfDay = TimeOfDay.ALL_DAY
    return_time_of_day: TimeOfDay = TimeOfDay.ALL_DAY
    deal_price_threshold: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    deal_price_threshold_roundtrip: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    interval_minutes: float = Field(DEFAULT_INTERVAL_MIN, gt=0, allow_inf_nan=False)
    scrape_timeout_minutes: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    sms: Optional[SmsConfig] = None

    @field_validator("origin", "destination", mode="before")
    @classmethod
    def _airport_code(cls, v: Any) -> str:
        code = str(v or "").strip().upper()
        if not code:
            raise ValueError("airport code must be a non-empty string")
        return code

    @field_validator("departure_time_of_day", "return_time_of_day", mode="before")
    @classmethod
    def _time_of_day(cls, v: Any) -> TimeOfDay:
        return TimeOfDay.parse(v)

    @field_validator(
        "deal_price_threshold",
        "deal_price_threshold_roundtrip",
        "scrape_timeout_minutes",
        mode="before",
    )
    @classmethod
    def _blank_is_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("interval_minutes", mode="before")
    @classmethod
    def _default_interval(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_INTERVAL_MIN
        return v

    @property
    def sms_enabled(self) -> bool:
        return self.sms is not None


# ────────────────────────────────────────────────────────────────
# Static record
# ────────────────────────────────────────────────────────────────


def _env(key: str) -> str:
    out = []
    for ch in key:
        if ch.isupper():
            out.append("_")
        out.append(ch.upper())
    return "SNIPER_" + "".join(out)


def _field(key: str) -> Any:
    return Field("", validation_alias=AliasChoices(key, _env(key)))


class Settings(BaseSettings):
    """Static trip settings loaded from environment variables.

    Every value is a string and an empty string means "unset".
    """

    model_config = SettingsConfigDict(extra="ignore")

    origin: str = _field("from")
    destination: str = _field("to")
    leave_date: str = _field("leaveDate")
    return_date: str = _field("returnDate")
    passengers: str = _field("passengers")
    departure_time_of_day: str = _field("departureTimeOfDay")
    return_time_of_day: str = _field("returnTimeOfDay")
    deal_price_threshold: str = _field("dealPriceThreshold")
    deal_price_threshold_roundtrip: str = _field("dealPriceThresholdRoundtrip")
    interval: str = _field("interval")
    scrape_timeout: str = _field("scrapeTimeout")
    twilio_account_sid: str = _field("twilioAccountSid")
    twilio_auth_token: str = _field("twilioAuthToken")
    twilio_phone_from: str = _field("twilioPhoneFrom")
    twilio_phone_to: str = _field("twilioPhoneTo")

    @field_validator("*", mode="before")
    @classmethod
    def _as_string(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @classmethod
    def from_json(cls, path: str) -> "Settings":
        """Load settings from a JSON file keyed like the static record."""
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(path, f"not valid JSON ({exc})") from exc
        except OSError as exc:
            raise ConfigurationError(path, f"cannot read file ({exc})") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(path, "expected a JSON object")
        return cls(**data)

    def as_record(self) -> Dict[str, str]:
        """Return the values keyed by the static record names."""
        record: Dict[str, str] = {}
        for name, info in type(self).model_fields.items():
            record[info.validation_alias.choices[0]] = getattr(self, name)
        return record


@lru_cache()
def get_settings() -> Settings:
    """Return static settings loaded from the environment."""
    return Settings()


# ────────────────────────────────────────────────────────────────
# Sources
# ────────────────────────────────────────────────────────────────


class AnswerSource(Protocol):
    def answers(self) -> Mapping[str, str]:
        ...


class StaticSource:
    """Answers taken from a predefined :class:`Settings` record."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    def answers(self) -> Mapping[str, str]:
        return self.settings.as_record()


TIME_OF_DAY_HELP = "ALL_DAY / BEFORE_NOON / NOON_TO_SIX / AFTER_SIX"


class InteractiveSource:
    """Answers collected one question at a time from the terminal."""

    QUESTIONS = [
        ("from", "Origin airport code", None),
        ("to", "Destination airport code", None),
        ("leaveDate", "Departure date (YYYY-MM-DD)", None),
        ("returnDate", "Return date (YYYY-MM-DD)", None),
        ("passengers", "Number of passengers", "1"),
        ("dealPriceThreshold", "One-way deal price, USD (blank to disable)", ""),
        (
            "dealPriceThresholdRoundtrip",
            "Roundtrip deal price, USD (blank to disable)",
            "",
        ),
        ("departureTimeOfDay", f"Departure time of day ({TIME_OF_DAY_HELP})", "ALL_DAY"),
        ("returnTimeOfDay", f"Return time of day ({TIME_OF_DAY_HELP})", "ALL_DAY"),
        ("interval", "Check interval in minutes", str(int(DEFAULT_INTERVAL_MIN))),
    ]
    SMS_QUESTIONS = [
        ("twilioAccountSid", "Twilio account SID"),
        ("twilioAuthToken", "Twilio auth token"),
        ("twilioPhoneFrom", "Twilio phone number to send from"),
        ("twilioPhoneTo", "Phone number to send alerts to"),
    ]

    def __init__(
        self,
        prompt: Callable[..., Any] = click.prompt,
        confirm: Callable[..., bool] = click.confirm,
    ) -> None:
        self.prompt = prompt
        self.confirm = confirm

    def answers(self) -> Mapping[str, str]:
        record: Dict[str, str] = {}
        for key, text, default in self.QUESTIONS:
            if default is None:
                value = self.prompt(text)
            else:
                value = self.prompt(text, default=default, show_default=bool(default))
            record[key] = str(value).strip()

        if self.confirm("Set up SMS deal alerts?", default=False):
            for key, text in self.SMS_QUESTIONS:
                record[key] = str(self.prompt(text)).strip()
        return record


# ────────────────────────────────────────────────────────────────
# Resolution
# ────────────────────────────────────────────────────────────────


def _sms_config(record: Mapping[str, str]) -> Optional[SmsConfig]:
    values = {
        field: str(record.get(key) or "").strip()
        for key, field in SMS_FIELDS.items()
    }
    if not all(values.values()):
        return None
    return SmsConfig(**values)


def resolve_query(source: AnswerSource) -> TripQuery:
    """Turn *source* answers into a validated :class:`TripQuery`."""
    record = source.answers()
    kwargs: Dict[str, Any] = {
        field: record.get(key, "") for key, field in QUERY_FIELDS.items()
    }
    kwargs["sms"] = _sms_config(record)

    try:
        query = TripQuery(**kwargs)
    except ValidationError as exc:
        err = exc.errors()[0]
        field = str(err["loc"][0]) if err["loc"] else ""
        keys = {v: k for k, v in QUERY_FIELDS.items()}
        raise ConfigurationError(keys.get(field, field), err["msg"]) from exc

    if query.return_date < query.departure_date:
        raise ConfigurationError("returnDate", "must not be before leaveDate")
    return query


__all__ = [
    "ConfigurationError",
    "InteractiveSource",
    "Settings",
    "SmsConfig",
    "StaticSource",
    "TimeOfDay",
    "TripQuery",
    "get_settings",
    "resolve_query",
]
