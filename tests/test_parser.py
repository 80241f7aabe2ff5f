from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest
from sms_categorizer.parser import InvalidTimestamp, parse_message

AMMAN = ZoneInfo("Asia/Amman")


def test_arabic_cliq_incoming_transfer():
    text = "CLIQ: تم استلام حوالة كليق واردة من Ahmad Ali بقيمة 100.00 دينار"
    tx = parse_message(text, "2024-03-01T10:00:00+03:00")
    assert tx is not None
    assert tx.type == "income"
    assert tx.source == "CliQ"
    assert tx.amount == pytest.approx(100.0)
    assert tx.merchant == "Ahmad Ali"
    assert tx.category == "CliQ Incoming"
    assert tx.original_message == text
    assert tx.message_type == "cliq_incoming"


def test_greeting_is_not_a_transaction():
    assert parse_message("تهنئكم الاسرة بعيد مبارك") is None


def test_message_without_amount_is_rejected():
    assert parse_message("Your OTP is 1234. Do not share it.") is None


def test_empty_text_is_rejected():
    assert parse_message("   ") is None


def test_english_card_purchase():
    tx = parse_message("Purchase of JOD 25.500 at CARREFOUR AMMAN on 12/03 from card 1234")
    assert tx is not None
    assert tx.type == "expense"
    assert tx.source == "SMS"
    assert tx.amount == pytest.approx(25.5)
    assert tx.merchant == "CARREFOUR"
    assert tx.category == "Groceries"
    assert tx.message_type == "bank_debit"


def test_arabic_indic_digits_are_folded():
    tx = parse_message("تم شراء بمبلغ ١٢٫٥٠٠ دينار لدى كارفور")
    assert tx is not None
    assert tx.amount == pytest.approx(12.5)
    assert tx.type == "expense"
    assert tx.merchant == "كارفور"
    assert tx.category == "Groceries"


def test_thousands_separator_in_amount():
    tx = parse_message("Your card was debited with amount 1,250.750 JOD at IKEA Amman")
    assert tx is not None
    assert tx.amount == pytest.approx(1250.75)
    assert tx.merchant == "IKEA"
    assert tx.category == "Shopping"


def test_fee_message_falls_back_to_bank_fees_label():
    tx = parse_message("تم خصم عمولة بقيمة 1.000 دينار من حسابكم رقم 1234")
    assert tx is not None
    assert tx.type == "expense"
    assert tx.merchant == "Bank Fees"
    assert tx.category == "Expense"


def test_english_cliq_received_from_person():
    tx = parse_message("You have received a CliQ transfer of 50.000 JOD from Sara Khaled")
    assert tx is not None
    assert (tx.type, tx.source) == ("income", "CliQ")
    assert tx.amount == pytest.approx(50.0)
    assert tx.merchant == "Sara Khaled"
    assert tx.category == "CliQ Incoming"


def test_english_cliq_direction_after_decimal_amount():
    tx = parse_message("CliQ transfer of JOD 100.000 received from Ahmad Ali")
    assert tx is not None
    assert (tx.type, tx.source) == ("income", "CliQ")
    assert tx.amount == pytest.approx(100.0)
    assert tx.merchant == "Ahmad Ali"
    assert tx.category == "CliQ Incoming"
    assert tx.message_type == "cliq_incoming"

    out = parse_message("CliQ transfer of JOD 35.500 sent to Omar Khalil.")
    assert out is not None
    assert out.type == "expense"
    assert out.message_type == "cliq_outgoing"


def test_cliq_direction_stops_at_sentence_end():
    # "received" belongs to the next sentence, so direction stays unknown.
    tx = parse_message("CliQ transfer of JOD 20.000 to Lina Haddad. Request received")
    assert tx is not None
    assert tx.type == "unknown"
    assert tx.category == "CliQ Transfer"


def test_cliq_salary_hint():
    tx = parse_message("Received CliQ transfer of 750 JOD from Acme Co salary March")
    assert tx is not None
    assert tx.category == "Salary"


def test_cliq_business_hint():
    tx = parse_message("Received CliQ transfer of 120 JOD from Nour Trading Company")
    assert tx is not None
    assert tx.merchant == "Nour Trading Company"
    assert tx.category == "Business"


def test_invalid_timestamp_raises():
    with pytest.raises(InvalidTimestamp):
        parse_message("Purchase of JOD 5 at KFC", "not-a-date")


def test_naive_timestamp_gets_configured_zone():
    tx = parse_message("Purchase of JOD 5 at KFC", "2024-05-01T12:30:00")
    assert tx is not None
    assert tx.timestamp.tzinfo == AMMAN
    assert tx.timestamp.hour == 12


def test_aware_timestamp_is_kept():
    when = datetime(2024, 5, 1, 9, 0, tzinfo=UTC)
    tx = parse_message("Purchase of JOD 5 at KFC", when)
    assert tx is not None
    assert tx.timestamp == when
    assert tx.category == "Food"


def test_missing_timestamp_defaults_to_now():
    before = datetime.now(UTC)
    tx = parse_message("Purchase of JOD 5 at KFC")
    assert tx is not None
    assert tx.timestamp.tzinfo is not None
    assert tx.timestamp >= before
