"""Validation and routing of newly added files."""
from .gate import RoutingGate, RoutingResult
from .handlers import HandlerRegistry, HandlerRoute, HandlerToken, UploadHandler
from .validation import UploadValidator, ValidationResult, Validator, normalize_result

__all__ = [
    "RoutingGate",
    "RoutingResult",
    "HandlerRegistry",
    "HandlerRoute",
    "HandlerToken",
    "UploadHandler",
    "UploadValidator",
    "ValidationResult",
    "Validator",
    "normalize_result",
]
