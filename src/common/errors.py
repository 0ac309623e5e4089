"""Pipeline error taxonomy."""


class PipelineError(Exception):
    """Base class for errors raised by the aggregation pipeline."""


class FetchError(PipelineError):
    """A feed could not be fetched or parsed. Retryable."""


class ProviderError(PipelineError):
    """An embedding or translation provider call failed."""

    retryable = False


class RetryableProviderError(ProviderError):
    """Timeout, rate limit or server error from a provider."""

    retryable = True


class FatalProviderError(ProviderError):
    """Invalid credentials or malformed request. Aborts the run."""


class PersistenceError(PipelineError):
    """A database operation failed."""


class RunCancelled(PipelineError):
    """The run was cancelled, usually because its time budget ran out."""

    def __init__(self, run_id: str, message: str = "run cancelled") -> None:
        super().__init__(f"{message} (run_id={run_id})")
        self.run_id = run_id
