import json

import pytest
from click.testing import CliRunner

from tiercart import __version__
from tiercart import cli as tiercart_cli
from tiercart.engine import CartEngine


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return CliRunner()


def _write_json(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_version_flag(runner):
    result = runner.invoke(tiercart_cli.main, ["--version"])

    assert result.exit_code == 0
    assert f"tiercart version {__version__}" in result.output


def test_quote_with_standard_preset(runner):
    result = runner.invoke(tiercart_cli.main, ["quote", "100", "5", "--preset", "standard"])

    assert result.exit_code == 0, result.output
    assert "Unit price: ฿90.00 (base ฿100.00)" in result.output
    assert "Subtotal: ฿450.00" in result.output
    assert "Savings: ฿50.00" in result.output
    assert "Add 5 more for 20% OFF" in result.output


def test_quote_json_includes_next_tier(runner):
    result = runner.invoke(tiercart_cli.main, ["quote", "100", "3", "--preset", "standard", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["effective_price"] == "100"
    assert payload["next_tier"] == {"min_quantity": 5, "items_needed": 2, "discount_percent": "10"}


def test_quote_with_tier_file(runner, tmp_path):
    tiers = _write_json(tmp_path / "tiers.json", [{"min_quantity": 1, "max_quantity": None, "discount_percent": 15}])

    result = runner.invoke(tiercart_cli.main, ["quote", "9.99", "2", "--tiers", tiers, "--json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["effective_price"] == "8.49"


def test_quote_rejects_bad_tier_file(runner, tmp_path):
    tiers = _write_json(tmp_path / "tiers.json", [{"min_quantity": 0, "discount_percent": 15}])

    result = runner.invoke(tiercart_cli.main, ["quote", "10", "2", "--tiers", tiers])

    assert result.exit_code == 2
    assert "TIER_FORMAT" in result.output


def test_quote_rejects_zero_quantity(runner):
    result = runner.invoke(tiercart_cli.main, ["quote", "10", "0"])

    assert result.exit_code != 0


def test_tiers_check_flags_gaps(runner, tmp_path):
    tiers = _write_json(
        tmp_path / "tiers.json",
        {
            "price_tiers": [
                {"min_quantity": 1, "max_quantity": 4, "discount_percent": 0},
                {"min_quantity": 8, "max_quantity": None, "discount_percent": 10},
            ]
        },
    )

    result = runner.invoke(tiercart_cli.main, ["tiers", "check", tiers])

    assert result.exit_code == 1
    assert "GAP" in result.output


def test_tiers_check_accepts_catalog(runner, tmp_path):
    catalog = _write_json(
        tmp_path / "catalog.json",
        {
            "products": [
                {
                    "id": "fern-01",
                    "base_price": 100,
                    "price_tiers": [
                        {"min_quantity": 1, "max_quantity": 4, "discount_percent": 0},
                        {"min_quantity": 5, "max_quantity": None, "discount_percent": 10},
                    ],
                }
            ]
        },
    )

    result = runner.invoke(tiercart_cli.main, ["tiers", "check", catalog])

    assert result.exit_code == 0
    assert "OK: fern-01" in result.output


def test_cart_recompute_reports_and_repairs_drift(runner, tmp_path, fern):
    snapshot = _write_json(
        tmp_path / "cart.json",
        {"lines": [{"product": fern.to_dict(), "quantity": 5}], "total": "999999", "totalQuantity": 5},
    )

    result = runner.invoke(tiercart_cli.main, ["cart", "recompute", snapshot, "--write"])

    assert result.exit_code == 0, result.output
    assert "DRIFT: total: stored 999999 recomputed 450.00" in result.output
    repaired = json.loads((tmp_path / "cart.json").read_text(encoding="utf-8"))
    assert repaired["total"] == "450.00"
    assert CartEngine(initial=repaired).total == 450


def test_cart_recompute_uses_catalog_for_product_ids(runner, tmp_path, fern):
    catalog = _write_json(tmp_path / "catalog.json", {"products": [fern.to_dict()]})
    snapshot = _write_json(tmp_path / "cart.json", {"lines": [{"product": fern.id, "quantity": 10}], "total": "800.00"})

    result = runner.invoke(tiercart_cli.main, ["cart", "recompute", snapshot, "--catalog", catalog])

    assert result.exit_code == 0, result.output
    assert "Snapshot aggregates are consistent." in result.output


def test_cart_show_uses_configured_snapshot_path(runner, tmp_path, fern):
    (tmp_path / "pyproject.toml").write_text('[tool.tiercart]\nsnapshot_path = "saved.json"\n', encoding="utf-8")
    _write_json(tmp_path / "saved.json", {"lines": [{"product": fern.to_dict(), "quantity": 10}]})

    result = runner.invoke(tiercart_cli.main, ["cart", "show"])

    assert result.exit_code == 0, result.output
    assert "Boston fern x10 @ ฿80.00 [10+: 20%] = ฿800.00" in result.output
    assert "Total: ฿800.00" in result.output
    assert "Savings: ฿200.00" in result.output


def test_cart_show_missing_snapshot(runner):
    result = runner.invoke(tiercart_cli.main, ["cart", "show", "nowhere.json"])

    assert result.exit_code == 2
    assert "no cart snapshot" in result.output


def test_cart_show_malformed_snapshot(runner, tmp_path):
    snapshot = _write_json(tmp_path / "cart.json", {"lines": "broken"})

    result = runner.invoke(tiercart_cli.main, ["cart", "show", snapshot])

    assert result.exit_code == 2
    assert "SNAPSHOT_FORMAT" in result.output


def test_quote_json_error_is_structured(runner, tmp_path):
    tiers = _write_json(tmp_path / "tiers.json", [{"min_quantity": 3, "max_quantity": 1, "discount_percent": 5}])

    result = runner.invoke(tiercart_cli.main, ["quote", "10", "2", "--tiers", tiers, "--json"])

    assert result.exit_code == 2
    payload = json.loads(result.output)
    assert payload["ok"] is False
    assert payload["error"]["code"] == "TIER_FORMAT"
    assert payload["error"]["category"] == "CATALOG"
    assert payload["error"]["actionable"] is True
