"""Error types for metrics collection."""


class ConfigurationError(ValueError):
    """Invalid run configuration. Fatal: raised before any fetching starts."""


class CollaboratorUnavailable(Exception):
    """A repository's data could not be fetched (not found, API error, rate limit).

    Recoverable: the repository contributes no events and the run continues.
    """

    def __init__(self, repo: str, message: str):
        super().__init__(f"{repo}: {message}")
        self.repo = repo
