from __future__ import annotations


class CibotError(RuntimeError):
    """Base class for failures the action reports as a single fatal message."""


class ConfigError(CibotError):
    pass


class JobFetchError(CibotError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InferenceError(CibotError):
    pass


class FeedbackError(CibotError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitCommandError(CibotError):
    """
    Raised by the git runner. The message is already token-masked, so callers
    may log it as-is.
    """

    def __init__(self, message: str, *, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class StoreError(CibotError):
    pass
