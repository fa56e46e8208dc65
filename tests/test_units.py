from __future__ import annotations

import pytest

from clustergym.utils.units import parse_data_rate, parse_time


def test_parse_data_rate_units():
    assert parse_data_rate("5Mbps") == pytest.approx(5e6)
    assert parse_data_rate("100kbps") == pytest.approx(1e5)
    assert parse_data_rate(2500) == 2500.0


def test_parse_time_units():
    assert parse_time("2ms") == pytest.approx(0.002)
    assert parse_time("1.5s") == pytest.approx(1.5)
    assert parse_time(30) == 30.0


def test_parse_rejects_bad_values():
    with pytest.raises(ValueError):
        parse_data_rate("5 furlongs")
    with pytest.raises(ValueError):
        parse_data_rate(0)
    with pytest.raises(ValueError):
        parse_time("-1s")
    with pytest.raises(ValueError):
        parse_time("soon")
