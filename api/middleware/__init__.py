from .correlation import CorrelationIdMiddleware, get_correlation_id, get_client_ip, get_request_ip
from .logging import LoggingMiddleware

__all__ = [
    "CorrelationIdMiddleware",
    "LoggingMiddleware",
    "get_correlation_id",
    "get_client_ip",
    "get_request_ip",
]
