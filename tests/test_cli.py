import json

from sms_categorizer.cli import app
from typer.testing import CliRunner

runner = CliRunner()

CLIQ_TEXT = "CLIQ: تم استلام حوالة كليق واردة من Ahmad Ali بقيمة 100.00 دينار"


def test_parse_prints_transaction_json():
    result = runner.invoke(app, ["parse", CLIQ_TEXT, "--timestamp", "2024-03-01T10:00:00+03:00"])
    assert result.exit_code == 0, result.output
    doc = json.loads(result.stdout)
    assert doc == {
        "original_message": CLIQ_TEXT,
        "timestamp": "2024-03-01T10:00:00+03:00",
        "amount": 100.0,
        "merchant": "Ahmad Ali",
        "category": "CliQ Incoming",
        "type": "income",
        "source": "CliQ",
    }


def test_parse_prints_null_for_non_transactions():
    result = runner.invoke(app, ["parse", "تهنئكم الاسرة بعيد مبارك"])
    assert result.exit_code == 0
    assert result.stdout.strip() == "null"


def test_parse_rejects_invalid_timestamp():
    result = runner.invoke(app, ["parse", CLIQ_TEXT, "--timestamp", "yesterday"])
    assert result.exit_code == 2


def test_init_db_creates_schema(tmp_path):
    url = f"sqlite+pysqlite:///{tmp_path / 'fresh.db'}"
    result = runner.invoke(app, ["init-db", "--database-url", url])
    assert result.exit_code == 0, result.output
    assert "Database initialized." in result.stdout

    seeded = runner.invoke(app, ["seed-categories", "--user-id", "1", "--database-url", url])
    assert seeded.exit_code == 0, seeded.output
    assert "Created: Transport, Food, Salary" in seeded.stdout

    again = runner.invoke(app, ["seed-categories", "--user-id", "1", "--database-url", url])
    assert "already present" in again.stdout


def test_ingest_then_decide_then_list_patterns(db_url):
    seeded = runner.invoke(app, ["seed-categories", "--user-id", "1", "--database-url", db_url])
    assert seeded.exit_code == 0, seeded.output

    ingested = runner.invoke(
        app, ["ingest", CLIQ_TEXT, "--user-id", "1", "--database-url", db_url]
    )
    assert ingested.exit_code == 0, ingested.output
    assert "CliQ income 100.000 Ahmad Ali" in ingested.stdout
    assert "Pending decision 1:" in ingested.stdout

    # Salary is the third default category.
    decided = runner.invoke(app, ["decide", "1", "3", "--user-id", "1", "--database-url", db_url])
    assert decided.exit_code == 0, decided.output
    assert "Recorded ledger entry 1." in decided.stdout

    repeated = runner.invoke(app, ["decide", "1", "3", "--user-id", "1", "--database-url", db_url])
    assert repeated.exit_code == 1

    listed = runner.invoke(app, ["cliq-patterns", "--user-id", "1", "--database-url", db_url])
    assert listed.exit_code == 0, listed.output
    assert listed.stdout.startswith("ahmad ali\tincome\tSalary\t")


def test_ingest_skips_greetings(db_url):
    result = runner.invoke(
        app, ["ingest", "عيد سعيد", "--user-id", "1", "--database-url", db_url]
    )
    assert result.exit_code == 0
    assert "skipped" in result.stdout


def test_pending_lists_open_decisions_until_decided(db_url):
    runner.invoke(app, ["seed-categories", "--user-id", "1", "--database-url", db_url])
    runner.invoke(app, ["ingest", CLIQ_TEXT, "--user-id", "1", "--database-url", db_url])

    listed = runner.invoke(app, ["pending", "--user-id", "1", "--database-url", db_url])
    assert listed.exit_code == 0, listed.output
    (line,) = listed.stdout.strip().splitlines()
    assert line.startswith("1\t")
    assert "\tCliQ income 100.000\tAhmad Ali\tsuggested=" in line

    runner.invoke(app, ["decide", "1", "3", "--user-id", "1", "--database-url", db_url])
    empty = runner.invoke(app, ["pending", "--user-id", "1", "--database-url", db_url])
    assert empty.stdout.strip() == "No pending decisions."


def test_cliq_pattern_update_overrides_recurring_flag(db_url):
    runner.invoke(app, ["seed-categories", "--user-id", "1", "--database-url", db_url])
    runner.invoke(app, ["ingest", CLIQ_TEXT, "--user-id", "1", "--database-url", db_url])
    runner.invoke(app, ["decide", "1", "3", "--user-id", "1", "--database-url", db_url])

    base = ["cliq-pattern-update", "Ahmad Ali", "income", "--user-id", "1"]
    updated = runner.invoke(app, [*base, "--recurring", "--database-url", db_url])
    assert updated.exit_code == 0, updated.output
    assert updated.stdout.startswith("ahmad ali\tincome\tSalary\t")
    assert updated.stdout.strip().endswith("\trecurring")

    unknown = ["cliq-pattern-update", "Sara Khaled", "income", "--user-id", "1"]
    missing = runner.invoke(app, [*unknown, "--recurring", "--database-url", db_url])
    assert missing.exit_code == 1

    nothing = runner.invoke(app, [*base, "--database-url", db_url])
    assert nothing.exit_code == 2
