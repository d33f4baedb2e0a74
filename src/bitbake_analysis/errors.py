class BitbakeAnalysisError(Exception):
    """Base class for errors raised at the package boundaries."""


class UnsupportedLanguageError(BitbakeAnalysisError, ValueError):
    pass


class UnsupportedFileError(BitbakeAnalysisError, ValueError):
    pass
