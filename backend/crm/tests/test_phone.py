import pytest

from crm.services.phone import normalize_phone


@pytest.mark.parametrize("raw, expected", [
    ("+91 98765-43210", "919876543210"),
    ("9876543210", "919876543210"),
    ("(987) 654-3210", "919876543210"),
    ("+1 415 555 0100", "14155550100"),
    ("12345", "12345"),
])
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "+-()"])
def test_empty_input_has_no_identity(raw):
    assert normalize_phone(raw) is None


@pytest.mark.parametrize("raw", [
    "+91 98765-43210", "9876543210", "0044 20 7946 0958", "1-800-FLOWERS 12", "919876543210",
])
def test_normalize_is_idempotent_and_digits_only(raw):
    once = normalize_phone(raw)
    assert once.isdigit()
    assert normalize_phone(once) == once


def test_integer_input_is_accepted():
    assert normalize_phone(9876543210) == "919876543210"
