class PipelineError(Exception):
    """Fatal error that aborts the whole run."""

    pass


class SourceUnavailable(PipelineError):
    """Raised when a source cannot be fetched or read.

    This typically occurs when:
    - The local file does not exist or is not readable
    - The remote server is down or returns an error status
    - The payload is not valid delimited text
    """

    pass


class SchemaMismatch(PipelineError):
    """Raised when a source does not have the expected shape, e.g. a missing column or a date header that
    does not follow month/day/2-digit-year."""

    pass
