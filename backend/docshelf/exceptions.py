class GitHubError(RuntimeError):
    """Base class for failures talking to the hosting platform."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class OwnerNotFoundError(GitHubError):
    """Listing an owner's repositories returned not-found."""


class RateLimitedError(GitHubError):
    """The API refused the request because of rate limiting."""


class GitHubTransportError(GitHubError):
    """Network failure, unexpected status or malformed payload."""


class SourceValidationError(ValueError):
    pass


class SourceKindError(TypeError):
    """Operation does not apply to this kind of source."""


class StorageError(RuntimeError):
    pass
