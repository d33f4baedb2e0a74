from pathlib import Path
from typing import cast

from tree_sitter import Language
from tree_sitter_language_pack import SupportedLanguage, get_language

from bitbake_analysis.errors import UnsupportedFileError, UnsupportedLanguageError
from bitbake_analysis.models import EmbeddedLanguage

BITBAKE_LANGUAGE = "bitbake"

_EMBEDDED_LANGUAGE_ALIASES = {
    "bash": EmbeddedLanguage.SHELL,
    "sh": EmbeddedLanguage.SHELL,
    "shell": EmbeddedLanguage.SHELL,
    "py": EmbeddedLanguage.PYTHON,
    "python": EmbeddedLanguage.PYTHON,
}

_EMBEDDED_DEFAULT_EXTENSIONS = {
    EmbeddedLanguage.SHELL: ".sh",
    EmbeddedLanguage.PYTHON: ".py",
}

RECIPE_EXTENSIONS: frozenset[str] = frozenset({".bb", ".bbappend", ".bbclass", ".inc", ".conf"})


def normalize_embedded_language(language: str) -> EmbeddedLanguage:
    normalized = language.strip().lower()
    resolved = _EMBEDDED_LANGUAGE_ALIASES.get(normalized)
    if resolved is None:
        raise UnsupportedLanguageError(
            f"Unsupported embedded language '{language}'. Supported: {sorted(_EMBEDDED_LANGUAGE_ALIASES)}"
        )
    return resolved


def embedded_extension(language: EmbeddedLanguage) -> str:
    return _EMBEDDED_DEFAULT_EXTENSIONS[language]


def is_recipe_file(file_path: Path) -> bool:
    return file_path.suffix.lower() in RECIPE_EXTENSIONS


def ensure_recipe_file(file_path: Path) -> Path:
    if not is_recipe_file(file_path):
        raise UnsupportedFileError(
            f"Unsupported file extension: {file_path.suffix or '<none>'}. Supported: {sorted(RECIPE_EXTENSIONS)}"
        )
    return file_path


def load_bitbake_language() -> Language:
    return get_language(cast(SupportedLanguage, BITBAKE_LANGUAGE))
