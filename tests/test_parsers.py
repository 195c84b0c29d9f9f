from datetime import datetime, timezone

import pytest

from almoxarifado.adapters.parsers import (
    normalize_str, parse_quantidade_raw, to_bool, to_datetime, to_enum, to_float, to_iso,
)
from almoxarifado.domain.models import MovementKind, UserRole


@pytest.mark.parametrize(
    "txt,exp_num,exp_unit,exp_desc",
    [
        ("20 RESMA - Resmas", 20.0, "RESMA", "Resmas"),
        ("5,5 kg - quilos", 5.5, "KG", "quilos"),
        ("10 CX", 10.0, "CX", None),
        ("12", 12.0, None, None),
        ("", None, None, None),
        (None, None, None, None),
    ],
)
def test_parse_quantidade_raw(txt, exp_num, exp_unit, exp_desc):
    num, unit, desc = parse_quantidade_raw(txt)
    assert (num == exp_num) or (num is None and exp_num is None)
    assert unit == exp_unit
    assert desc == exp_desc


@pytest.mark.parametrize("val", ["TRUE", "true", " 1 ", 1, True, "sim", "S"])
def test_to_bool_true(val):
    assert to_bool(val) is True


@pytest.mark.parametrize("val", ["FALSE", "0", 0, False, "não", "", None])
def test_to_bool_false(val):
    assert to_bool(val) is False


@pytest.mark.parametrize("val", ["talvez", 2])
def test_to_bool_invalid(val):
    with pytest.raises(ValueError):
        to_bool(val)


def test_to_float():
    assert to_float("12,50") == 12.5
    assert to_float(3) == 3.0
    for bad in ("", None, True, "abc"):
        with pytest.raises(ValueError):
            to_float(bad)


def test_to_datetime_variants():
    assert to_datetime("2025-03-10T12:00:00Z") == datetime(2025, 3, 10, 12, tzinfo=timezone.utc)
    assert to_datetime("2025-03-10T12:00:00") == datetime(2025, 3, 10, 12, tzinfo=timezone.utc)
    assert to_datetime("10/03/2025") == datetime(2025, 3, 10, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        to_datetime("ontem")


def test_to_iso_round_trip():
    dt = datetime(2025, 3, 10, 12, 30, tzinfo=timezone.utc)
    assert to_datetime(to_iso(dt)) == dt


def test_to_enum_by_value_or_name():
    assert to_enum(MovementKind, "SAIDA") is MovementKind.EXIT
    assert to_enum(MovementKind, "exit") is MovementKind.EXIT
    assert to_enum(UserRole, "gestor") is UserRole.MANAGER
    with pytest.raises(ValueError):
        to_enum(UserRole, "CHEFE")


def test_normalize_str():
    assert normalize_str("  x ") == "x"
    assert normalize_str("   ") is None
    assert normalize_str(None) is None
