import pytest
from sms_categorizer.normalizers import clean_merchant, fold_digits, normalize_merchant


def test_fold_digits_maps_arabic_indic_and_separators():
    assert fold_digits("١٢٣٫٥") == "123.5"
    assert fold_digits("۱۲۳") == "123"
    assert fold_digits("١٬٢٥٠") == "1,250"
    assert fold_digits("JOD 10") == "JOD 10"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Ahmad Ali", "Ahmad Ali"),
        ("card 1234 Zara Amman", "Zara"),
        ("the Coffee House JOD", "Coffee House"),
        ("  Shell-Station #12 ", "ShellStation"),
        ("account no. 12**34", ""),
    ],
)
def test_clean_merchant(raw, expected):
    assert clean_merchant(raw) == expected


def test_normalize_merchant_is_lowercase_letters_only():
    assert normalize_merchant("  CARREFOUR  City-Mall 12 ") == "carrefour citymall"
    assert normalize_merchant("Ahmad   Ali") == "ahmad ali"


def test_normalize_merchant_keeps_arabic_letters():
    assert normalize_merchant(" كارفور  مول ") == "كارفور مول"


def test_normalize_merchant_is_idempotent():
    once = normalize_merchant("Talabat.com Order #55")
    assert normalize_merchant(once) == once
    assert once == "talabatcom order"
