class ConfigurationError(RuntimeError):
    """Startup configuration is missing or malformed. Fatal."""


class ValidationError(ValueError):
    """A request field is missing or has the wrong shape."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
