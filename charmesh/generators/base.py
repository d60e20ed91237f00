"""
Error handling, result format and runtime controls for mesh generation.

This module provides the foundation shared by every stage of the character
mesh pipeline: the typed error hierarchy, the standardized result returned to
callers, cooperative cancellation and time budgets, and structured logging
configuration.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog

if TYPE_CHECKING:
    from .texture_enhancer import EnhancedTextures


# Configure structured logging for generators
logger = structlog.get_logger(__name__)


class GenerationStatus(str, Enum):
    """Status of a generation operation."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ErrorSeverity(str, Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Error Handling Classes

class GenerationError(Exception):
    """Base exception for all generation-related errors."""

    default_code = "GENERATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.severity = severity
        self.details = details or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary format."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "original_exception": str(self.original_exception) if self.original_exception else None,
        }


class MeshGenerationError(GenerationError):
    """Geometry could not be produced from the given inputs."""

    default_code = "MESH_GENERATION_ERROR"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(message, **kwargs)


class InputValidationError(MeshGenerationError):
    """Malformed pixel buffer, analysis or request parameters."""

    default_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        field_value: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.field_name = field_name
        self.field_value = field_value
        self.details.update({
            "field_name": field_name,
            "field_value": field_value,
        })


class NonFiniteGeometryError(MeshGenerationError):
    """A depth or position computation produced NaN or infinity."""

    default_code = "NON_FINITE_GEOMETRY"

    def __init__(self, message: str, stage: Optional[str] = None, count: int = 0, **kwargs):
        super().__init__(message, severity=ErrorSeverity.CRITICAL, **kwargs)
        self.stage = stage
        self.details.update({"stage": stage, "non_finite_count": count})


class GLBEncodingError(GenerationError):
    """Buffer assembly or a container layout invariant failed."""

    default_code = "GLB_ENCODING_ERROR"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(message, **kwargs)


class GLBFormatError(GLBEncodingError):
    """A byte buffer is not a well-formed GLB container."""

    default_code = "GLB_FORMAT_ERROR"


class TextureEnhancementError(GenerationError):
    """Texture post-processing failed. Never fatal to mesh generation."""

    default_code = "TEXTURE_ENHANCEMENT_ERROR"

    def __init__(self, message: str, **kwargs):
        super().__init__(message, severity=ErrorSeverity.LOW, **kwargs)


class GenerationCancelledError(GenerationError):
    """The caller cancelled the generation."""

    default_code = "GENERATION_CANCELLED"

    def __init__(self, message: str, row: Optional[int] = None, **kwargs):
        super().__init__(message, severity=ErrorSeverity.LOW, **kwargs)
        self.row = row
        self.details.update({"row": row})


class GenerationTimeoutError(GenerationError):
    """The generation exceeded its time budget."""

    default_code = "GENERATION_TIMEOUT"

    def __init__(
        self,
        message: str,
        timeout_duration: Optional[float] = None,
        row: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, severity=ErrorSeverity.MEDIUM, **kwargs)
        self.timeout_duration = timeout_duration
        self.row = row
        self.details.update({"timeout_duration": timeout_duration, "row": row})


# Runtime Controls

class CancellationToken:
    """Thread-safe flag checked by the grid loop between rows."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, row: Optional[int] = None) -> None:
        if self._event.is_set():
            raise GenerationCancelledError("Generation cancelled by caller", row=row)


class GenerationBudget:
    """
    Optional wall-time budget for one generation.

    The clock is only consulted to abort work; it never feeds into geometry.
    """

    def __init__(self, time_budget_seconds: Optional[float] = None):
        self.time_budget_seconds = time_budget_seconds
        self._started = time.monotonic()

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self._started

    def check(self, row: Optional[int] = None) -> None:
        if self.time_budget_seconds is None:
            return
        if self.elapsed_seconds > self.time_budget_seconds:
            raise GenerationTimeoutError(
                f"Generation exceeded its {self.time_budget_seconds}s budget",
                timeout_duration=self.time_budget_seconds,
                row=row,
            )


# Standardized Response Format

@dataclass
class GenerationResult:
    """Standardized result format for mesh generations."""

    # Core result data
    status: GenerationStatus
    glb: Optional[bytes] = None
    textures: Optional["EnhancedTextures"] = None
    stats: Dict[str, Any] = field(default_factory=dict)

    # Metadata
    generator_name: str = ""
    generation_id: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processing_time_ms: Optional[int] = None
    used_fallback: bool = False

    # Error information
    error: Optional[GenerationError] = None
    warnings: List[str] = field(default_factory=list)

    # Request tracking
    request_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_successful(self) -> bool:
        """Check if the generation was successful."""
        return self.status == GenerationStatus.COMPLETED and self.error is None

    def add_warning(self, warning: str) -> None:
        """Add a warning message."""
        self.warnings.append(warning)
        logger.warning("Generation warning", warning=warning, generation_id=self.generation_id)

    def set_error(self, error: GenerationError) -> None:
        """Set the error and update status."""
        self.error = error
        if isinstance(error, GenerationCancelledError):
            self.status = GenerationStatus.CANCELLED
        else:
            self.status = GenerationStatus.FAILED
        logger.error(
            "Generation failed",
            error=error.to_dict(),
            generation_id=self.generation_id,
            generator=self.generator_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary format."""
        return {
            "status": self.status.value,
            "glb_bytes": len(self.glb) if self.glb is not None else None,
            "textures": self.textures.to_dict() if self.textures else None,
            "stats": self.stats,
            "generator_name": self.generator_name,
            "generation_id": self.generation_id,
            "created_at": self.created_at.isoformat(),
            "processing_time_ms": self.processing_time_ms,
            "used_fallback": self.used_fallback,
            "error": self.error.to_dict() if self.error else None,
            "warnings": self.warnings,
            "request_metadata": self.request_metadata,
            "is_successful": self.is_successful,
        }


# Logging

def configure_generator_logging(
    level: str = "INFO",
    format_json: bool = True,
    include_timestamp: bool = True,
) -> None:
    """
    Configure structured logging for generators.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        format_json: Whether to format logs as JSON
        include_timestamp: Whether to include timestamps
    """
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="ISO"))

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
    )


# Export all public classes and functions
__all__ = [
    "GenerationResult",
    "GenerationStatus",
    "ErrorSeverity",
    "GenerationError",
    "MeshGenerationError",
    "InputValidationError",
    "NonFiniteGeometryError",
    "GLBEncodingError",
    "GLBFormatError",
    "TextureEnhancementError",
    "GenerationCancelledError",
    "GenerationTimeoutError",
    "CancellationToken",
    "GenerationBudget",
    "configure_generator_logging",
]
