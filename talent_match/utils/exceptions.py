"""
Custom Exception Classes for the Talent Match pipeline
"""
import asyncio
import functools
import inspect
import time
from random import uniform
from typing import Dict, Any

from fastapi import HTTPException


class TalentMatchError(Exception):
    """Base exception for the matching pipeline"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class InvalidInputError(TalentMatchError):
    """Raised when the job description or profiles source is malformed"""

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if field:
            details['field'] = field
        if value is not None:
            details['invalid_value'] = str(value)[:200]
        super().__init__(message, error_code="INVALID_INPUT", details=details, **kwargs)


class ConfigurationError(TalentMatchError):
    """Raised when provider configuration is invalid or missing"""

    def __init__(self, message: str, config_key: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if config_key:
            details['config_key'] = config_key
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details, **kwargs)


class CompletionError(TalentMatchError):
    """Raised when a text completion request fails"""

    def __init__(self, message: str, provider: str = None, status_code: int = None, **kwargs):
        details = kwargs.pop('details', {})
        if provider:
            details['provider'] = provider
        if status_code:
            details['status_code'] = status_code
        super().__init__(message, error_code="COMPLETION_ERROR", details=details, **kwargs)


class JSONExtractionError(TalentMatchError):
    """Raised when no JSON object can be recovered from model output"""

    def __init__(self, message: str, text: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if text is not None:
            details['excerpt'] = text[:200]
        super().__init__(message, error_code="JSON_EXTRACTION_ERROR", details=details, **kwargs)


class AggregationError(TalentMatchError):
    """Raised when structurally invalid state reaches the aggregator"""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="AGGREGATION_ERROR", **kwargs)


# HTTP Exception Mapping
def map_to_http_exception(exc: TalentMatchError) -> HTTPException:
    """Map custom exceptions to HTTP exceptions"""

    status_code_mapping = {
        InvalidInputError: 400,
        ConfigurationError: 400,
        AggregationError: 500,
        CompletionError: 502,
        JSONExtractionError: 502,
    }

    status_code = status_code_mapping.get(type(exc), 500)

    detail = {
        "error": exc.to_dict(),
        "message": exc.message
    }

    return HTTPException(status_code=status_code, detail=detail)


# Retry decorator with exponential backoff
def retry_with_logging(
    max_attempts: int = 3,
    backoff_factor: float = 1.0,
    exceptions: tuple = (Exception,),
    logger=None
):
    """Decorator to retry operations with exponential backoff and logging"""
    max_attempts = max(1, max_attempts)

    def decorator(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if logger:
                        logger.warning(
                            f"Attempt {attempt + 1}/{max_attempts} failed for {func.__name__}: {str(e)}"
                        )

                    if attempt < max_attempts - 1:  # Don't sleep on the last attempt
                        sleep_time = backoff_factor * (2 ** attempt) + uniform(0, backoff_factor)
                        await asyncio.sleep(sleep_time)
                    else:
                        if logger and max_attempts > 1:
                            logger.error(f"All {max_attempts} attempts failed for {func.__name__}")
                        raise

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if logger:
                        logger.warning(
                            f"Attempt {attempt + 1}/{max_attempts} failed for {func.__name__}: {str(e)}"
                        )

                    if attempt < max_attempts - 1:
                        sleep_time = backoff_factor * (2 ** attempt) + uniform(0, backoff_factor)
                        time.sleep(sleep_time)
                    else:
                        if logger and max_attempts > 1:
                            logger.error(f"All {max_attempts} attempts failed for {func.__name__}")
                        raise

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
