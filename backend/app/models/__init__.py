from app.models.api_call_log import ApiCallLog

__all__ = [
    "ApiCallLog",
]
