from __future__ import annotations

"""client/apunto/services/diagnostics/messages.py

User-facing notices for classified failures (Spanish product copy).
"""

from dataclasses import dataclass

from apunto.services.diagnostics.error_classifier import (
    AnalysisError,
    ErrorCategory,
    ProcessingTimeoutError,
    classify_failure,
)

ERROR_TITLE = "Error"

MESSAGES = {
    ErrorCategory.NO_INTERNET: (
        "No hay conexión a internet. Por favor, verifica tu conexión de red e intenta nuevamente."
    ),
    ErrorCategory.TIMEOUT: (
        "La solicitud tardó demasiado tiempo. Por favor, verifica tu conexión e intenta nuevamente."
    ),
    ErrorCategory.API_UNREACHABLE: (
        "No se pudo conectar con el servidor. Verifica tu conexión a internet y que el backend esté disponible."
    ),
    ErrorCategory.ERROR_SERVER: "Error en el servidor. Por favor, intenta nuevamente más tarde.",
    ErrorCategory.SERVICE_UNAVAILABLE: (
        "El servicio no está disponible en este momento. Por favor, intenta más tarde."
    ),
    ErrorCategory.VALIDATION: "Por favor ingresa una descripción del documento.",
    ErrorCategory.ENCODE_FAILED: "No se pudo leer la imagen seleccionada. Por favor, intenta con otra foto.",
    ErrorCategory.UNKNOWN_ERROR: "Ocurrió un error desconocido. Por favor, intenta nuevamente.",
}

PROCESSING_TIMEOUT_MESSAGE = "El análisis está tardando demasiado. Por favor, intenta nuevamente."


@dataclass(frozen=True)
class ErrorNotice:
    title: str
    message: str
    retryable: bool


def describe_error(error: BaseException) -> ErrorNotice:
    """Build the notice for any failure; non-AnalysisError input is classified first."""
    if not isinstance(error, AnalysisError):
        error = classify_failure(error)

    if isinstance(error, ProcessingTimeoutError):
        message = PROCESSING_TIMEOUT_MESSAGE
    elif error.category is ErrorCategory.ERROR_SERVER and error.detail:
        message = f"Error en el servidor: {error.detail}"
    elif error.category is ErrorCategory.SERVER_MESSAGE:
        message = f"Error: {error.detail}"
    else:
        message = MESSAGES.get(error.category, MESSAGES[ErrorCategory.UNKNOWN_ERROR])

    return ErrorNotice(title=ERROR_TITLE, message=message, retryable=error.retryable)
