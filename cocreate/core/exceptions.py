"""Exceptions raised inside the generation core."""


class CoCreateError(Exception):
    """Base class for CoCreate errors."""


class LLMUnavailableError(CoCreateError):
    """No LLM client is configured, or the call failed or timed out."""


class LLMRateLimitError(LLMUnavailableError):
    """The LLM service rejected the call for rate limiting."""


class LLMResponseError(CoCreateError):
    """The LLM answered but the response carried no text."""


class ResponseParseError(CoCreateError):
    """A structured (JSON) response could not be parsed or validated."""


class StaleProfileError(CoCreateError):
    """A voice profile changed between read and write."""

    def __init__(self, user_id: str, expected_version: int, actual_version: int):
        self.user_id = user_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Voice profile for {user_id} is at version {actual_version}, "
            f"expected {expected_version}"
        )
