"""Error taxonomy shared by the session orchestrator.

Every error carries a stable ``code`` string so callers (and logs) can
classify failures without matching on exception types.
"""


class CognifyError(Exception):
    """Base class for all cognify errors."""

    code = "cognify_error"


class CapabilityUnavailableError(CognifyError):
    """The platform offers no speech-to-text (or it is not configured)."""

    code = "capability_unavailable"


class ExtractionFailedError(CognifyError):
    """Text could not be extracted from an uploaded document."""

    code = "extraction_failed"


class IndexGenerationFailedError(CognifyError):
    """The study index could not be generated for a document."""

    code = "index_generation_failed"


class ModelUnavailableError(CognifyError):
    """The generative model service failed or could not be reached."""

    code = "model_unavailable"


class MalformedModelResponseError(CognifyError):
    """A model response did not follow the requested structure."""

    code = "malformed_model_response"


class StorageUnavailableError(CognifyError):
    """The session store could not be read or written."""

    code = "storage_unavailable"


class SessionNotFoundError(CognifyError, KeyError):
    """A mutation referenced a session id that does not exist."""

    code = "session_not_found"

    def __str__(self) -> str:
        return Exception.__str__(self)
