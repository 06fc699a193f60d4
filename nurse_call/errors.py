"""Error taxonomy shared by the chat bridge, tools, and routes."""


class NurseCallError(Exception):
    """Base class for all service errors."""


class InvalidInput(NurseCallError):
    """Caller supplied an unusable value (e.g. an empty chat message)."""


class ServiceUnavailable(NurseCallError):
    """The local model service did not answer the liveness probe."""


class RetryExhausted(NurseCallError):
    """An operation kept failing until the retry budget ran out."""

    def __init__(self, last_error: BaseException, attempts: int) -> None:
        super().__init__(
            f"Operation failed after {attempts} attempts: "
            f"{type(last_error).__name__}: {last_error}"
        )
        self.last_error = last_error
        self.attempts = attempts


class ParseError(NurseCallError):
    """Model output was not a valid JSON turn envelope."""


class UnknownTool(NurseCallError):
    """Model asked for a tool that is not declared."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown function: {name}")
        self.name = name


class PersistenceError(NurseCallError):
    """The domain store could not read or write."""


class NotFound(NurseCallError):
    """A record with the given id does not exist."""


class SessionBindingError(NurseCallError):
    """A session already bound to one patient was asked to switch."""
