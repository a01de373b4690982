"""
Translation errors.

Separated from the providers so the orchestrator can catch them without
importing any HTTP machinery.
"""
from __future__ import annotations

from typing import List, Optional


class TranslateError(Exception):
    """Base class for translation pipeline failures."""


class DetectionFailure(TranslateError):
    """No detector available, or every detector failed."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class ProviderFailure(TranslateError):
    """A single provider call failed; the facade falls back to the next one."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class AllProvidersFailure(TranslateError):
    """Every eligible provider failed for one translation."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        if self.errors:
            detail = "\n".join(self.errors)
            super().__init__(f"all translation providers failed:\n{detail}")
        else:
            super().__init__("no translation provider available")


class ReplyDeliveryFailure(TranslateError):
    def __init__(self, target_lang: str, cause: BaseException):
        super().__init__(f"reply delivery failed lang={target_lang}: {cause!r}")
        self.target_lang = target_lang
        self.cause = cause
