class RotatorError(Exception):
    """Base class for every error the rotator raises on purpose."""


class ConfigError(RotatorError):
    pass


class ValidationError(RotatorError):
    """A key file or a prompted value is malformed."""


class KeyFileNotFoundError(RotatorError, FileNotFoundError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"Could not find {path}")

    def __str__(self):
        return f"Could not find {self.path}"


class CountMismatchError(RotatorError):
    def __init__(self, old_count: int, new_count: int):
        self.old_count = old_count
        self.new_count = new_count
        super().__init__(
            f"{old_count} old app stakes does not match the replacement of {new_count} new app stakes"
        )


class UserAbortError(RotatorError):
    def __init__(self, answer: str):
        self.answer = answer
        super().__init__(f"User confirmation failed, user answered with {answer!r}")


class ChainError(RotatorError):
    """A single chain command failed."""


class SubmissionError(RotatorError):
    """
    Raised once every retry attempt of a submission has failed.
    Carries the last observed error only.
    """

    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(str(last_error))


class QueryError(RotatorError):
    pass
