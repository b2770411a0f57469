"""
Import-boundary enforcement.

1. Kernel purity      -- pipetrak_kernel/** may not import engines or config.
2. Engine boundary    -- pipetrak_engines/** may not import pipetrak_config
                         or scripts.
3. Engine no-impure   -- pipetrak_engines/** may not read the wall clock or
                         the environment.
4. Config entrypoint  -- scripts reach configuration only through
                         ``pipetrak_config.get_active_config``.

All scanning is done via AST; these tests are read-only.
"""

import ast
import glob
from pathlib import Path

from pipetrak_kernel.invariants import FORBIDDEN_ENGINE_IMPORTS

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(root: str) -> list[str]:
    """Return all .py files under *root*, sorted for deterministic order."""
    return sorted(glob.glob(f"{ROOT / root}/**/*.py", recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *filepath*."""
    try:
        source = Path(filepath).read_text()
        tree = ast.parse(source, filename=filepath)
    except (SyntaxError, UnicodeDecodeError):
        return []

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    """True if *module* equals or is a child of any prefix."""
    for prefix in prefixes:
        if module == prefix or module.startswith(f"{prefix}."):
            return True
    return False


def _extract_attribute_calls(filepath: str) -> list[tuple[int, str]]:
    """Return (line_number, 'receiver.attr') for two-level attribute nodes."""
    try:
        source = Path(filepath).read_text()
        tree = ast.parse(source, filename=filepath)
    except (SyntaxError, UnicodeDecodeError):
        return []

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name):
            results.append((node.lineno, f"{node.value.id}.{node.attr}"))
    return results


def _violations(root: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(root):
        for lineno, module in _extract_imports(path):
            if _matches_any(module, forbidden):
                found.append(f"{path}:{lineno} imports {module}")
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestKernelPurity:

    def test_kernel_files_found(self):
        assert _python_files("pipetrak_kernel")

    def test_kernel_imports_nothing_above_it(self):
        assert _violations(
            "pipetrak_kernel", ("pipetrak_engines", "pipetrak_config", "scripts")
        ) == []


class TestEngineBoundary:

    def test_engines_do_not_import_config(self):
        assert _violations("pipetrak_engines", FORBIDDEN_ENGINE_IMPORTS) == []

    def test_engines_do_not_import_io_libraries(self):
        assert _violations("pipetrak_engines", ("yaml", "os", "pathlib", "sqlalchemy")) == []


class TestEngineNoImpure:

    FORBIDDEN_CALLS = (
        "datetime.now",
        "datetime.utcnow",
        "date.today",
        "time.time",
        "os.environ",
        "os.getenv",
    )

    def test_no_wall_clock_or_environment(self):
        found = []
        for path in _python_files("pipetrak_engines"):
            for lineno, call in _extract_attribute_calls(path):
                if call in self.FORBIDDEN_CALLS:
                    found.append(f"{path}:{lineno} uses {call}")

        assert found == []


class TestConfigEntrypoint:

    def test_scripts_use_public_entrypoint(self):
        internal = (
            "pipetrak_config.loader",
            "pipetrak_config.validator",
            "pipetrak_config.bridges",
        )

        assert _violations("scripts", internal) == []
