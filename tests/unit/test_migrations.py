"""Schema DDL: columns the raw-SQL repositories rely on."""

import importlib.util
from pathlib import Path
from unittest.mock import MagicMock

VERSIONS = Path(__file__).resolve().parents[2] / "alembic" / "versions"


def _upgrade_sql(filename: str, monkeypatch) -> str:
    spec = importlib.util.spec_from_file_location(filename.removesuffix(".py"), VERSIONS / filename)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    op = MagicMock()
    monkeypatch.setattr(module, "op", op)
    module.upgrade()
    return "\n".join(call.args[0] for call in op.execute.call_args_list)


def test_webhook_log_columns(monkeypatch) -> None:
    sql = _upgrade_sql("003_create_transactions.py", monkeypatch)
    table = sql[sql.index("CREATE TABLE webhook_logs"):]
    table = table[: table.index(");")]
    for column in ("provider", "correlation_key", "payload", "processed", "outcome", "created_at"):
        assert column in table


def test_transaction_progress_columns(monkeypatch) -> None:
    sql = _upgrade_sql("003_create_transactions.py", monkeypatch)
    assert "credited_amount" in sql
    assert "locked_amount" in sql
