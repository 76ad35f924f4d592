import pytest
from pedido_bot.domain.models import Order
from pedido_bot.domain.services.schedule import ScheduleValidator, format_hours, normalize_hours_payload

HOURS = {
    "friday": [{"from": "11:00", "to": "15:00"}, {"from": "19:00", "to": "23:00"}],
    "saturday": [{"from": "19:00", "to": "23:30"}],
}


@pytest.fixture
def validator(settings):
    return ScheduleValidator(settings)


def _at(d, t):
    return Order(scheduled_date=d, scheduled_time=t)


@pytest.mark.parametrize("t", ["11:00", "15:00", "19:00", "23:00", "13:45"])
def test_inside_ranges_inclusive(validator, t):
    assert validator.validate(_at("2025-03-14", t), HOURS).ok


@pytest.mark.parametrize("t", ["10:59", "15:01", "18:59", "23:01"])
def test_one_minute_outside(validator, t):
    check = validator.validate(_at("2025-03-14", t), HOURS)
    assert not check.ok
    assert check.reason == "time_outside_ranges"
    assert "de 11:00 a 15:00 y de 19:00 a 23:00" in check.message


def test_closed_day_lists_week(validator):
    check = validator.validate(_at("2025-03-16", "21:00"), HOURS)  # domingo
    assert not check.ok
    assert check.reason == "day_closed"
    assert "domingo" in check.message
    assert "- viernes: de 11:00 a 15:00 y de 19:00 a 23:00" in check.message
    assert "- sábado: de 19:00 a 23:30" in check.message


@pytest.mark.parametrize("d, t", [(None, "21:00"), ("2025-03-14", None), ("mañana", "21:00"), ("2025-03-14", "9pm")])
def test_incomplete_or_malformed_passes(validator, d, t):
    assert validator.validate(_at(d, t), HOURS).ok


def test_without_configured_hours_everything_passes(validator):
    assert validator.validate(_at("2025-03-16", "03:00"), {}).ok
    assert validator.validate(_at("2025-03-16", "03:00"), None).ok


def test_internal_error_lets_order_through(validator):
    broken = {"friday": [{"desde": "11:00"}]}
    assert validator.validate(_at("2025-03-14", "12:00"), broken).ok


def test_normalize_hours_payload():
    raw = {
        "monday": [
            {"desde": "11:00", "hasta": "15:00"},
            {"from": "19:00", "to": "18:00"},
            {"from": "20:00", "to": "23:00"},
            {"from": "23:10", "to": "23:50"},
        ],
        "tuesday": [],
        "wednesday": "todo el día",
        "funday": [{"from": "10:00", "to": "11:00"}],
    }
    assert normalize_hours_payload(raw) == {
        "monday": [{"from": "11:00", "to": "15:00"}, {"from": "20:00", "to": "23:00"}],
    }
    assert normalize_hours_payload(["no"]) == {}


def test_format_hours_in_week_order():
    assert format_hours(HOURS).splitlines() == [
        "- viernes: de 11:00 a 15:00 y de 19:00 a 23:00",
        "- sábado: de 19:00 a 23:30",
    ]
