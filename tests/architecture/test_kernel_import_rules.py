"""
Kernel import boundaries, checked by AST scan.

1. Kernel isolation -- inventory_kernel/** never imports the config or
   orchestration packages (FORBIDDEN_KERNEL_IMPORTS).
2. Domain purity    -- inventory_kernel/domain/** never imports the ORM,
   the database layer, models, selectors or services.
"""

import ast
from pathlib import Path

from inventory_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

ROOT = Path(__file__).resolve().parents[2]
KERNEL = ROOT / "inventory_kernel"

DOMAIN_FORBIDDEN = (
    "sqlalchemy",
    "inventory_kernel.db",
    "inventory_kernel.models",
    "inventory_kernel.selectors",
    "inventory_kernel.services",
)


def _imports(path: Path) -> list[tuple[int, str]]:
    tree = ast.parse(path.read_text(), filename=str(path))
    found = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            found.extend((node.lineno, alias.name) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            found.append((node.lineno, node.module))
    return found


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(root: Path, forbidden: tuple[str, ...]) -> list[str]:
    return [
        f"{path.relative_to(ROOT)}:{line} imports {module}"
        for path in sorted(root.rglob("*.py"))
        for line, module in _imports(path)
        if _matches_any(module, forbidden)
    ]


def test_kernel_does_not_import_outer_layers():
    assert _violations(KERNEL, FORBIDDEN_KERNEL_IMPORTS) == []


def test_domain_is_pure():
    assert _violations(KERNEL / "domain", DOMAIN_FORBIDDEN) == []


def test_invariant_names_match_values():
    assert {i.value for i in ALL_KERNEL_INVARIANTS} == {
        i.name.lower() for i in KernelInvariant
    }
