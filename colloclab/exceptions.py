import logging


# Library logger - no configuration, user controls output
logger = logging.getLogger(__name__)


class ColloclabBaseError(Exception):
    """
    Base class for all colloclab-specific errors.

    All colloclab exceptions inherit from this class, allowing users to catch
    any colloclab-specific error with a single except clause.

    Args:
        message: The error message describing what went wrong
        context: Optional additional context about where the error occurred
    """

    def __init__(self, message: str, context: str | None = None) -> None:
        self.message = message
        self.context = context

        # Library logs at DEBUG level - user can promote if needed
        logger.debug("colloclab exception: %s", self._format_message())
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with optional context."""
        if self.context:
            return f"{self.message} (Context: {self.context})"
        return self.message


class ConfigurationError(ColloclabBaseError):
    """
    Raised when a problem definition or solver setting cannot be transcribed.

    A transcription that fails with this error is never constructed; fix the
    problem or settings and transcribe again.

    Examples:
        - Missing or non-callable dynamics function
        - Dynamics returning the wrong number of state derivatives
        - Unsupported transcription scheme or mesh density
        - Bound specification with lower > upper
    """

    pass


class DataIntegrityError(ColloclabBaseError):
    """
    Raised when internal data corruption or inconsistency is detected.

    This typically represents a bug in colloclab or a caller handing over
    arrays that do not belong to the transcription they are used with.

    Examples:
        - Flat vector length not matching the variable layout
        - Guess blocks with a shape different from the variable store
    """

    pass


class SolutionExtractionError(ColloclabBaseError):
    """
    Raised when the solver's flat result cannot be expanded into a Solution.
    """

    pass


class InterpolationError(ColloclabBaseError):
    """
    Raised when an iterate cannot be resampled onto a new time grid.

    Occurs for empty or non-monotone time vectors and for blocks whose column
    count does not match the iterate's time vector.
    """

    pass


class SolverInvocationError(ColloclabBaseError):
    """
    Raised when the NLP solver backend cannot be created or crashes.

    Non-convergence is not an error: it is reported through the status of the
    returned Solution.
    """

    pass
