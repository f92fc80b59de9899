import ast
from pathlib import Path

BASE: Path = Path(__file__).parent.parent
SOURCES: Path = BASE / "src" / "py" / "minifetch"

# Distribution names that differ from their import names
IMPORT_NAMES: dict[str, str] = {"mypy-extensions": "mypy_extensions"}


def setupArgument(name: str) -> object:
	tree = ast.parse((BASE / "setup.py").read_text())
	for node in ast.walk(tree):
		if isinstance(node, ast.keyword) and node.arg == name:
			return ast.literal_eval(node.value)
	raise KeyError(name)


def imported() -> set[str]:
	res: set[str] = set()
	for path in SOURCES.rglob("*.py"):
		for node in ast.walk(ast.parse(path.read_text())):
			if isinstance(node, ast.Import):
				res.update(_.name.split(".")[0] for _ in node.names)
			elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
				res.add(node.module.split(".")[0])
	return res


def test_runtime_requirements_are_imported() -> None:
	modules = imported()
	for requirement in setupArgument("install_requires"):
		assert IMPORT_NAMES.get(requirement, requirement) in modules, requirement


def test_optional_requirements() -> None:
	extras = setupArgument("extras_require")
	assert isinstance(extras, dict)
	assert extras["tls"] == ["certifi"]
	assert "certifi" in imported()
	assert "pytest" in extras["test"]


# EOF
