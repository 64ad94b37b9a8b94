"""Exception hierarchy for refscout.

Only InvalidRequestError and ConfigurationError abort a discovery run.
SearchError and ReasoningError are caught at the stage that raised them and
recorded as warnings on the result.
"""


class RefscoutError(Exception):
    """Base class for all refscout errors."""


class InvalidRequestError(RefscoutError, ValueError):
    """Caller input is missing or unusable (e.g. empty proposal text)."""


class ConfigurationError(RefscoutError):
    """A required collaborator is not configured (e.g. no API key)."""


class SearchError(RefscoutError):
    """A bibliographic index call failed or timed out."""

    def __init__(self, index: str, message: str):
        super().__init__(f"{index}: {message}")
        self.index = index
        self.message = message


class ReasoningError(RefscoutError):
    """The text-generation service failed for a reasoning batch."""


class DiscoveryCancelled(RefscoutError):
    """The discovery run was cancelled between stages."""
