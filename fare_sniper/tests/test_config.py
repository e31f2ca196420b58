import json
from datetime import date

import pytest

from fare_sniper.config import (
    ConfigurationError,
    InteractiveSource,
    Settings,
    StaticSource,
    TimeOfDay,
    get_settings,
    resolve_query,
)


class DictSource:
    def __init__(self, record):
        self.record = record

    def answers(self):
        return self.record


def make_record(**overrides):
    record = {
        "from": "mdw",
        "to": "DEN",
        "leaveDate": "2026-11-20",
        "returnDate": "2026-11-27",
        "passengers": "2",
        "dealPriceThreshold": "",
        "dealPriceThresholdRoundtrip": "",
        "interval": "",
        "departureTimeOfDay": "",
        "returnTimeOfDay": "",
        "twilioAccountSid": "",
        "twilioAuthToken": "",
        "twilioPhoneFrom": "",
        "twilioPhoneTo": "",
    }
    record.update(overrides)
    return record


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SNIPER_FROM", "MDW")
    monkeypatch.setenv("SNIPER_TO", "DEN")
    monkeypatch.setenv("SNIPER_LEAVE_DATE", "2026-11-20")
    monkeypatch.setenv("SNIPER_DEAL_PRICE_THRESHOLD", "95")
    get_settings.cache_clear()

    cfg = get_settings()
    assert isinstance(cfg, Settings)
    assert cfg.origin == "MDW"
    assert cfg.destination == "DEN"
    assert cfg.leave_date == "2026-11-20"
    assert cfg.deal_price_threshold == "95"
    assert cfg.as_record()["dealPriceThreshold"] == "95"
    get_settings.cache_clear()


def test_settings_from_json(tmp_path):
    path = tmp_path / "trip.json"
    path.write_text(
        json.dumps(
            {
                "from": "MDW",
                "to": "DEN",
                "leaveDate": "2026-11-20",
                "returnDate": "2026-11-27",
                "passengers": 2,
                "interval": 180,
            }
        )
    )
    query = resolve_query(StaticSource(Settings.from_json(str(path))))

    assert query.passengers == 2
    assert query.interval_minutes == 180
    assert query.sms is None


def test_resolve_defaults():
    query = resolve_query(DictSource(make_record()))

    assert query.origin == "MDW"
    assert query.departure_date == date(2026, 11, 20)
    assert query.return_date == date(2026, 11, 27)
    assert query.interval_minutes == 30
    assert query.deal_price_threshold is None
    assert query.deal_price_threshold_roundtrip is None
    assert query.departure_time_of_day is TimeOfDay.ALL_DAY
    assert not query.sms_enabled


def test_sms_requires_all_four_fields():
    partial = make_record(twilioAccountSid="AC1", twilioAuthToken="tok", twilioPhoneFrom="+1555")
    assert resolve_query(DictSource(partial)).sms is None

    full = make_record(
        twilioAccountSid="AC1",
        twilioAuthToken="tok",
        twilioPhoneFrom="+15550001",
        twilioPhoneTo="+15550002",
    )
    sms = resolve_query(DictSource(full)).sms
    assert sms is not None
    assert sms.phone_to == "+15550002"


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"from": ""}, "from"),
        ({"to": "  "}, "to"),
        ({"leaveDate": "next friday"}, "leaveDate"),
        ({"passengers": "0"}, "passengers"),
        ({"passengers": ""}, "passengers"),
        ({"dealPriceThreshold": "-5"}, "dealPriceThreshold"),
        ({"interval": "abc"}, "interval"),
        ({"returnTimeOfDay": "midnight"}, "returnTimeOfDay"),
        ({"returnDate": "2026-11-01"}, "returnDate"),
    ],
)
def test_invalid_field_is_named(overrides, field):
    with pytest.raises(ConfigurationError) as exc_info:
        resolve_query(DictSource(make_record(**overrides)))
    assert exc_info.value.field == field


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("noon_to_six", TimeOfDay.NOON_TO_SIX),
        ("NOON_TO_6PM", TimeOfDay.NOON_TO_SIX),
        ("before noon", TimeOfDay.BEFORE_NOON),
        ("", TimeOfDay.ALL_DAY),
    ],
)
def test_time_of_day_parse(raw, expected):
    assert TimeOfDay.parse(raw) is expected


def scripted(answers):
    it = iter(answers)

    def prompt(text, **kwargs):
        return next(it)

    return prompt


BASE_ANSWERS = [
    "MDW", "DEN", "2026-11-20", "2026-11-27", "1",
    "95", "180", "BEFORE_NOON", "AFTER_SIX", "60",
]


def test_interactive_without_sms():
    source = InteractiveSource(
        prompt=scripted(BASE_ANSWERS), confirm=lambda text, **kw: False
    )
    query = resolve_query(source)

    assert query.deal_price_threshold == 95
    assert query.deal_price_threshold_roundtrip == 180
    assert query.departure_time_of_day is TimeOfDay.BEFORE_NOON
    assert query.return_time_of_day is TimeOfDay.AFTER_SIX
    assert query.interval_minutes == 60
    assert query.sms is None


def test_interactive_with_sms():
    answers = BASE_ANSWERS + ["AC1", "tok", "+15550001", "+15550002"]
    source = InteractiveSource(
        prompt=scripted(answers), confirm=lambda text, **kw: True
    )
    query = resolve_query(source)

    assert query.sms.account_sid == "AC1"
    assert query.sms.phone_from == "+15550001"


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"interval": "inf"}, "interval"),
        ({"dealPriceThreshold": "inf"}, "dealPriceThreshold"),
        ({"dealPriceThresholdRoundtrip": "inf"}, "dealPriceThresholdRoundtrip"),
        ({"scrapeTimeout": "nan"}, "scrapeTimeout"),
    ],
)
def test_non_finite_numbers_rejected(overrides, field):
    with pytest.raises(ConfigurationError) as exc_info:
        resolve_query(DictSource(make_record(**overrides)))
    assert exc_info.value.field == field


def test_from_json_unreadable_file(tmp_path):
    with pytest.raises(ConfigurationError) as exc_info:
        Settings.from_json(str(tmp_path / "missing.json"))
    assert "cannot read file" in exc_info.value.reason
