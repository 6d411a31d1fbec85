from __future__ import annotations


class LLMServiceError(RuntimeError):
    """Base class for provider-level failures."""


class InvalidURLError(LLMServiceError):
    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid service URL: {url!r}")
        self.url = url


class ApiKeyMissingError(LLMServiceError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"API key is missing for provider {provider!r}")
        self.provider = provider


class ApiError(LLMServiceError):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class ResponseDecodingError(LLMServiceError):
    pass


class NoResponseTextError(LLMServiceError):
    def __init__(self, detail: str = "") -> None:
        msg = "Provider response contained no text"
        super().__init__(f"{msg}: {detail}" if detail else msg)


class ServiceNotImplementedError(LLMServiceError):
    def __init__(self, feature: str, provider: str = "") -> None:
        where = f" for provider {provider!r}" if provider else ""
        super().__init__(f"{feature} is not implemented{where}")
        self.feature = feature
        self.provider = provider


class TokenCountError(LLMServiceError):
    pass


class ConnectionFailedError(LLMServiceError):
    """The underlying transport failed (refused, reset, timed out)."""


class TranslationError(RuntimeError):
    """Base class for orchestration failures."""


class ChapterNotFoundError(TranslationError):
    def __init__(self, chapter_id: str) -> None:
        super().__init__(f"Chapter not found: {chapter_id}")
        self.chapter_id = chapter_id


class VersionNotFoundError(TranslationError):
    def __init__(self, version_id: str) -> None:
        super().__init__(f"Version not found: {version_id}")
        self.version_id = version_id


class CurrentVersionDeletionError(TranslationError):
    def __init__(self, version_id: str) -> None:
        super().__init__(f"Refusing to delete the current version: {version_id}")
        self.version_id = version_id


class LineCountMismatchError(TranslationError):
    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Line count mismatch: source has {expected} lines, translation has {actual}")
        self.expected = expected
        self.actual = actual


class TranslationCancelledError(TranslationError):
    pass
