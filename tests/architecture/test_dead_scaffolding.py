"""
Dead scaffolding checks for the database layer.

Every public function in stock_kernel/db/** must have a caller: another
function in the same module, another package module, the operator script
or the test fixtures.  Helpers nothing reaches are removed rather than
kept "just in case".
"""

from __future__ import annotations

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]

DB_PACKAGE = ROOT / "stock_kernel" / "db"

CONSUMER_ROOTS = ("stock_kernel", "stock_engines", "stock_config", "stock_services", "scripts", "tests")


def _public_functions(path: Path) -> list[str]:
    tree = ast.parse(path.read_text(), filename=str(path))
    return [
        node.name
        for node in tree.body
        if isinstance(node, ast.FunctionDef) and not node.name.startswith("_")
    ]


def _referenced_names() -> set[str]:
    """Every name loaded, attribute read or imported anywhere in the project."""
    names: set[str] = set()
    here = Path(__file__).resolve()
    for root in CONSUMER_ROOTS:
        for path in sorted((ROOT / root).rglob("*.py")):
            if path.resolve() == here:
                continue
            tree = ast.parse(path.read_text(), filename=str(path))
            for node in ast.walk(tree):
                if isinstance(node, ast.Name):
                    names.add(node.id)
                elif isinstance(node, ast.Attribute):
                    names.add(node.attr)
                elif isinstance(node, ast.ImportFrom):
                    names.update(alias.name for alias in node.names)
    return names


class TestDbHelpersHaveConsumers:

    def test_every_public_db_function_is_referenced(self):
        referenced = _referenced_names()

        unused = [
            f"  {module.relative_to(ROOT)}::{name}"
            for module in sorted(DB_PACKAGE.glob("*.py"))
            for name in _public_functions(module)
            if name not in referenced
        ]

        assert not unused, (
            "Public database helpers without a caller:\n" + "\n".join(unused)
        )

    def test_transactions_only_through_unit_of_work(self):
        names = _public_functions(DB_PACKAGE / "engine.py")

        assert "session_scope" not in names
        assert "get_session" not in names
