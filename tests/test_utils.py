from utils import clean_text, natural_key


def test_clean_text_basic():
    assert clean_text("  Ana  ") == "Ana"
    assert clean_text(12) == "12"


def test_clean_text_missing_values():
    assert clean_text(None) == ""
    assert clean_text(float("nan")) == ""
    assert clean_text("nan") == ""
    assert clean_text("   ") == ""


def test_natural_key_orders_digit_runs_numerically():
    assert natural_key("2") < natural_key("10")
    assert natural_key("10") < natural_key("10-PRE") < natural_key("11")
