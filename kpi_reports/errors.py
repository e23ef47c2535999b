"""Errors raised by the report pipeline.

Each error carries the HTTP status the API answers with; the handlers in
``kpi_reports.main`` turn them into ``{"error": message}`` bodies.
"""


class ReportError(Exception):
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(ReportError):
    """The caller omitted or malformed a required field."""
    status_code = 400
    default_message = "Missing required parameters"


class Unauthenticated(ReportError):
    status_code = 401
    default_message = "Unauthorized - Missing token"


class NotFound(ReportError):
    status_code = 404
    default_message = "Report not found"


class MethodNotAllowed(ReportError):
    status_code = 405
    default_message = "Method not allowed"


class ProviderFailure(ReportError):
    """The completion provider failed or answered with an error status."""
    status_code = 502
    default_message = "Completion provider error"


class MalformedCompletion(ReportError):
    """The provider answered, but the content is not a report object.

    Only raised inside the parser; the processor turns it into a degraded report.
    """
    status_code = 502
    default_message = "Malformed completion"


class StorageUnavailable(ReportError):
    """A document store operation failed. Callers may retry."""
    status_code = 500
    default_message = "Document store unavailable"
