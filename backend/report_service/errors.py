# report_service/errors.py

import httpx
from google.api_core import exceptions as google_exceptions


class ReportServiceError(Exception):
    """Base error for the report service."""


class NetworkError(ReportServiceError):
    """Firestore or FCM could not be reached and no cached data was available."""


class NotFoundError(ReportServiceError):
    pass


NETWORK_EXCEPTIONS = (
    NetworkError,
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
)


def is_network_error(exc: BaseException) -> bool:
    if isinstance(exc, NETWORK_EXCEPTIONS):
        return True
    return "network" in str(exc).lower()
