from typer.testing import CliRunner

from bizzi import __version__
from bizzi.cli.commands import app

runner = CliRunner()


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"Bizzi v{__version__}" in result.output


def test_classify_resolves_without_store_or_model() -> None:
    result = runner.invoke(
        app,
        ["classify", "what's outstanding on receivables over 45 days", "--route", "/dashboard/accounting"],
    )

    assert result.exit_code == 0
    assert "Resolved: invoice_status" in result.output


def test_classify_honours_forced_intent() -> None:
    result = runner.invoke(app, ["classify", "hello", "--intent", "tax_deadlines"])

    assert result.exit_code == 0
    assert "Resolved: tax_deadlines" in result.output
    assert "forced by --intent" in result.output
