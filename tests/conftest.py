"""Shared fixtures and helpers for tests."""

from pathlib import Path

import pytest
from lsprotocol.types import TextDocumentItem
from tree_sitter import Language, Parser
from tree_sitter_language_pack import get_language, get_parser

from bitbake_analysis.config import Settings
from bitbake_analysis.core.analyzer import Analyzer
from bitbake_analysis.core.service import make_document
from bitbake_analysis.embedded.documents import EmbeddedDocumentManager

_REPO_ROOT = Path(__file__).parent.parent

RECIPE_URI = "file:///layers/meta-fixtures/recipes-example/example_1.0.bb"

COMPLETION_RECIPE = """DESCRIPTION = ""

python do_foo(){
    print('')
}

do_bar(){
    echo ''
}
"""


# ---------------------------------------------------------------------------
# Auto-marker: every test under tests/unit is a unit test
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        if rel.parts and rel.parts[0] == "unit":
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Shared unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def bitbake_language() -> Language:
    """Return the tree-sitter BitBake language."""
    return get_language("bitbake")


@pytest.fixture
def bitbake_parser() -> Parser:
    """Return a tree-sitter parser for BitBake."""
    return get_parser("bitbake")


@pytest.fixture
def settings() -> Settings:
    """Settings with a short debounce window so tests stay fast."""
    return Settings(debounce_ms=20)


@pytest.fixture
def analyzer(settings: Settings, bitbake_language: Language) -> Analyzer:
    analyzer = Analyzer(settings)
    analyzer.initialize(bitbake_language)
    return analyzer


@pytest.fixture
def manager(settings: Settings) -> EmbeddedDocumentManager:
    return EmbeddedDocumentManager(settings)


@pytest.fixture
def recipe_document() -> TextDocumentItem:
    return make_document(RECIPE_URI, COMPLETION_RECIPE)
