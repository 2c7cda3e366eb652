"""
test_alembic.py — Verify Alembic migration setup and structure.

Reads migration sources as text and parses them with ast, so no database
or Alembic runtime context is needed.

Called by: pytest
Depends on: alembic/, app.models
"""

import ast
from pathlib import Path

ROOT = Path(__file__).parent.parent
MIGRATION_DIR = ROOT / "alembic" / "versions"


def _baseline() -> tuple[str, ast.Module]:
    files = sorted(MIGRATION_DIR.glob("*.py"))
    assert files, "No migration files found"
    source = files[0].read_text()
    return source, ast.parse(source)


def _assignments(tree: ast.Module) -> dict:
    values = {}
    for node in tree.body:
        if isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name) and node.value is not None:
            values[node.target.id] = ast.literal_eval(node.value)
    return values


def _function_source(source: str, tree: ast.Module, name: str) -> str:
    fn = next(n for n in tree.body if isinstance(n, ast.FunctionDef) and n.name == name)
    return ast.get_source_segment(source, fn)


def test_baseline_revision_has_no_parent():
    _, tree = _baseline()
    values = _assignments(tree)
    assert values["revision"] == "001_initial"
    assert values["down_revision"] is None


def test_baseline_upgrade_uses_metadata_create_all():
    source, tree = _baseline()
    up = _function_source(source, tree, "upgrade")
    assert "Base.metadata.create_all" in up
    assert "op.get_bind()" in up


def test_baseline_downgrade_uses_metadata_drop_all():
    source, tree = _baseline()
    assert "Base.metadata.drop_all" in _function_source(source, tree, "downgrade")


def test_env_py_imports_all_models():
    content = (ROOT / "alembic" / "env.py").read_text()
    assert "from app.models import Base" in content


def test_metadata_covers_all_tables():
    from app.models import Base

    expected = {
        "product_groups", "units", "products", "product_packages",
        "warehouses", "stock_balances", "counterparties", "delivery_addresses",
        "price_types", "client_contracts", "client_agreements",
        "special_prices", "product_prices", "sync_runs", "sync_run_items",
    }
    assert expected == set(Base.metadata.tables)


def test_no_create_all_in_main():
    """main.py must not create tables itself; startup.py and Alembic own the schema."""
    content = (ROOT / "app" / "main.py").read_text()
    assert "create_all" not in content
