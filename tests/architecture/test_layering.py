"""Layer contracts: domain is pure, application depends only on domain and ports."""

import ast
from pathlib import Path

import pytest

PACKAGE_ROOT = Path(__file__).resolve().parents[2] / "src" / "ficsync"

# Application code may log through the shared logging setup
APPLICATION_ALLOWED = {"ficsync.infrastructure.logging"}


def _module_name(path: Path) -> str:
    parts = path.relative_to(PACKAGE_ROOT.parent).with_suffix("").parts
    if parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts)


def _imports(path: Path) -> set[str]:
    module = _module_name(path)
    is_package = path.name == "__init__.py"
    tree = ast.parse(path.read_text(encoding="utf-8"))
    found: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            found.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom):
            if node.level:
                base = module.split(".")
                # A package's own __init__ counts as one level deeper
                base = base if is_package else base[:-1]
                base = base[: len(base) - (node.level - 1)]
                target = ".".join(base + ([node.module] if node.module else []))
            else:
                target = node.module or ""
            found.add(target)
            found.update(f"{target}.{alias.name}" for alias in node.names)
    return found


def _layer_files(layer: str) -> list[Path]:
    return sorted((PACKAGE_ROOT / layer).rglob("*.py"))


@pytest.mark.parametrize("path", _layer_files("domain"), ids=lambda p: p.name)
def test_domain_imports_nothing_outside_domain(path):
    forbidden = {
        name
        for name in _imports(path)
        if name.startswith(("ficsync.application", "ficsync.infrastructure"))
    }
    assert not forbidden, f"{path.name} imports {sorted(forbidden)}"


@pytest.mark.parametrize("path", _layer_files("application"), ids=lambda p: p.name)
def test_application_does_not_import_infrastructure(path):
    forbidden = {
        name
        for name in _imports(path)
        if name.startswith("ficsync.infrastructure")
        and not any(name == allowed or name.startswith(f"{allowed}.") for allowed in APPLICATION_ALLOWED)
    }
    assert not forbidden, f"{path.name} imports {sorted(forbidden)}"


def test_domain_has_no_third_party_dependencies():
    third_party = {"httpx", "bs4", "jinja2", "nacl", "pydantic", "dotenv"}
    for path in _layer_files("domain"):
        roots = {name.split(".")[0] for name in _imports(path)}
        assert not roots & third_party, f"{path.name} imports {sorted(roots & third_party)}"
