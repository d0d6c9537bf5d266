import ast
from pathlib import Path

import pytest

SRC = Path(__file__).resolve().parents[1] / "src"


def _functions(package: str) -> list[tuple[str, ast.FunctionDef | ast.AsyncFunctionDef]]:
    found = []
    for file_path in sorted((SRC / package).rglob("*.py")):
        if "__pycache__" in file_path.parts:
            continue
        module = ast.parse(file_path.read_text(encoding="utf-8"))
        for node in ast.walk(module):
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                found.append((f"{file_path.relative_to(SRC)}:{node.lineno}:{node.name}", node))
    return found


@pytest.mark.parametrize("package", ["zq_runner", "zqr"])
def test_all_functions_have_docstring_with_example(package: str) -> None:
    functions = _functions(package)
    assert functions, f"no functions found under src/{package}"

    missing = [loc for loc, node in functions if not ast.get_docstring(node)]
    missing_example = [
        loc
        for loc, node in functions
        if ast.get_docstring(node) and "Example:" not in (ast.get_docstring(node) or "")
    ]

    assert not missing, "Missing function docstrings:\n" + "\n".join(missing)
    assert not missing_example, "Docstrings without Example section:\n" + "\n".join(missing_example)
