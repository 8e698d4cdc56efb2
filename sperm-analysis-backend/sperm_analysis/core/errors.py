# sperm_analysis/core/errors.py


class AnalysisError(Exception):
    """Base class for errors raised around an analysis request."""

    status_code = 500

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"success": False, "error": self.message}
        payload.update(self.details)
        return payload


class ValidationError(AnalysisError):
    """
    Upload rejected before any analysis work:
    unsupported media type, empty file, oversize file.
    """

    status_code = 400


class DetectorUnavailable(AnalysisError):
    """
    External detector failed, timed out, or returned malformed data.
    Always recovered by the synthetic branch, never sent to the client.
    """

    status_code = 503


class PersistenceError(AnalysisError):
    """Storage or DB write failed. The computed result stays valid."""

    status_code = 502


class InternalError(AnalysisError):
    status_code = 500

    def __init__(self, message: str = "Internal server error", **details):
        super().__init__(message, **details)
