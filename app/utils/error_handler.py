"""
Sistema de manejo de errores personalizado.

Este módulo define todas las excepciones del ciclo de vida de pedidos y
pagos, y proporciona utilidades para manejo consistente de errores.
"""

import logging
import traceback
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


class ErrorCode(Enum):
    """
    Códigos de error estandarizados para la aplicación.
    """

    # Errores generales
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Errores de pedido
    INVALID_TIER = "INVALID_TIER"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    TRACKING_COLLISION = "TRACKING_COLLISION"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    INVALID_DELIVERABLE = "INVALID_DELIVERABLE"

    # Errores de cliente
    CUSTOMER_NOT_FOUND = "CUSTOMER_NOT_FOUND"
    CUSTOMER_IN_USE = "CUSTOMER_IN_USE"

    # Errores de pago
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    PAYMENT_ALREADY_SETTLED = "PAYMENT_ALREADY_SETTLED"
    RECONCILIATION_FAILED = "RECONCILIATION_FAILED"
    GATEWAY_ERROR = "GATEWAY_ERROR"
    GATEWAY_TIMEOUT = "GATEWAY_TIMEOUT"
    INVALID_WEBHOOK_SIGNATURE = "INVALID_WEBHOOK_SIGNATURE"

    # Errores de infraestructura
    DATABASE_ERROR = "DATABASE_ERROR"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"
    UNAUTHORIZED = "UNAUTHORIZED"


class ErrorSeverity(Enum):
    """
    Niveles de severidad para errores.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AppException(Exception):
    """
    Excepción base para todas las excepciones personalizadas de la aplicación.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        is_retryable: bool = False,
        is_critical: bool = False,
    ):
        """
        Inicializa la excepción.

        Args:
            message: Mensaje de error
            error_code: Código de error estandarizado
            details: Información adicional del error
            status_code: Código HTTP asociado
            severity: Severidad del error
            is_retryable: Si la operación puede reintentarse
            is_critical: Si requiere alerta inmediata
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        self.severity = severity
        self.is_retryable = is_retryable
        self.is_critical = is_critical
        self.timestamp = datetime.now(timezone.utc)
        self.traceback_str = traceback.format_exc()

    def to_dict(self) -> Dict[str, Any]:
        """
        Convierte la excepción a diccionario.

        Returns:
            Dict: Representación de la excepción
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "details": self.details,
            "status_code": self.status_code,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
            "is_critical": self.is_critical,
            "timestamp": self.timestamp.isoformat(),
            "traceback": self.traceback_str,
        }

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"


class ValidationException(AppException):
    """
    Excepción para errores de validación de datos de entrada.
    """

    def __init__(
        self,
        message: str,
        field: str,
        invalid_value: Any = None,
        expected_format: Optional[str] = None,
        **kwargs,
    ):
        """
        Inicializa la excepción de validación.

        Args:
            message: Mensaje de error
            field: Campo que falló la validación
            invalid_value: Valor que causó el error
            expected_format: Formato esperado
            **kwargs: Argumentos adicionales para AppException
        """
        kwargs.setdefault("error_code", ErrorCode.VALIDATION_ERROR)
        kwargs.setdefault("status_code", 422)
        kwargs.setdefault("severity", ErrorSeverity.LOW)
        super().__init__(message=message, **kwargs)
        self.field = field
        self.invalid_value = invalid_value
        self.expected_format = expected_format

        self.details.update(
            {
                "field": field,
                "invalid_value": str(invalid_value) if invalid_value is not None else None,
                "expected_format": expected_format,
            }
        )


# === ERRORES DE PEDIDOS ===


class InvalidTierException(ValidationException):
    """El tier de servicio no existe o está inactivo."""

    def __init__(self, tier_id: Any, reason: str = "Service tier does not exist or is inactive"):
        super().__init__(
            message=f"{reason}: {tier_id}",
            field="service_tier_id",
            invalid_value=tier_id,
            error_code=ErrorCode.INVALID_TIER,
            status_code=400,
        )
        self.tier_id = tier_id


class InvalidQuantityException(ValidationException):
    """La cantidad solicitada está fuera de rango."""

    def __init__(self, quantity: Any, max_quantity: int):
        super().__init__(
            message=f"Quantity must be between 1 and {max_quantity}, got {quantity}",
            field="quantity",
            invalid_value=quantity,
            expected_format=f"integer in [1, {max_quantity}]",
            error_code=ErrorCode.INVALID_QUANTITY,
            status_code=400,
        )


class InvalidDeliverableException(ValidationException):
    """El archivo entregable no cumple tipo o tamaño permitido."""

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(
            message=message,
            field="file",
            invalid_value=filename,
            error_code=ErrorCode.INVALID_DELIVERABLE,
            status_code=400,
        )


class OrderNotFoundException(AppException):
    """
    Excepción cuando un pedido no existe.
    """

    def __init__(self, order_ref: Union[int, str]):
        super().__init__(
            message=f"Order not found: {order_ref}",
            error_code=ErrorCode.ORDER_NOT_FOUND,
            status_code=404,
            severity=ErrorSeverity.LOW,
            details={"order": str(order_ref)},
        )
        self.order_ref = order_ref


class TrackingCollisionException(AppException):
    """
    Excepción cuando no se pudo generar un código de seguimiento único.
    """

    def __init__(self, tracking_code: str, attempts: int):
        super().__init__(
            message=f"Tracking code collision after {attempts} attempts: {tracking_code}",
            error_code=ErrorCode.TRACKING_COLLISION,
            status_code=409,
            severity=ErrorSeverity.MEDIUM,
            is_retryable=True,
            details={"tracking_code": tracking_code, "attempts": attempts},
        )


class InvalidTransitionException(AppException):
    """
    Excepción para transiciones de estado no permitidas.
    """

    def __init__(self, order_id: int, current_status: str, requested_status: str):
        super().__init__(
            message=f"Cannot transition order {order_id} from '{current_status}' to '{requested_status}'",
            error_code=ErrorCode.INVALID_TRANSITION,
            status_code=409,
            severity=ErrorSeverity.LOW,
            details={
                "order_id": order_id,
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )
        self.current_status = current_status
        self.requested_status = requested_status


# === ERRORES DE CLIENTES ===


class CustomerNotFoundException(AppException):
    """
    Excepción cuando un cliente no existe.
    """

    def __init__(self, customer_ref: Union[int, str]):
        super().__init__(
            message=f"Customer not found: {customer_ref}",
            error_code=ErrorCode.CUSTOMER_NOT_FOUND,
            status_code=404,
            severity=ErrorSeverity.LOW,
            details={"customer": str(customer_ref)},
        )


class CustomerInUseException(AppException):
    """
    Excepción al intentar eliminar un cliente con pedidos asociados.
    """

    def __init__(self, customer_id: int, order_count: int):
        super().__init__(
            message=f"Customer {customer_id} still has {order_count} order(s)",
            error_code=ErrorCode.CUSTOMER_IN_USE,
            status_code=409,
            severity=ErrorSeverity.LOW,
            details={"customer_id": customer_id, "order_count": order_count},
        )


# === ERRORES DE PAGOS ===


class AmountMismatchException(AppException):
    """
    Excepción cuando el monto reportado por la pasarela no coincide con el pedido.
    """

    def __init__(
        self,
        order_id: int,
        expected_amount: Decimal,
        expected_currency: str,
        gateway_amount: Decimal,
        gateway_currency: str,
    ):
        super().__init__(
            message=(
                f"Payment amount mismatch for order {order_id}: expected {expected_amount} {expected_currency}, "
                f"gateway reported {gateway_amount} {gateway_currency}"
            ),
            error_code=ErrorCode.AMOUNT_MISMATCH,
            status_code=400,
            severity=ErrorSeverity.HIGH,
            is_critical=True,
            details={
                "order_id": order_id,
                "expected_amount": str(expected_amount),
                "expected_currency": expected_currency,
                "gateway_amount": str(gateway_amount),
                "gateway_currency": gateway_currency,
            },
        )


class PaymentAlreadySettledException(AppException):
    """
    Excepción cuando un pedido ya fue pagado con otra referencia de pasarela.
    """

    def __init__(self, order_id: int, settled_reference: str, incoming_reference: str):
        super().__init__(
            message=(
                f"Order {order_id} already settled by {settled_reference}; "
                f"refusing second settlement {incoming_reference}"
            ),
            error_code=ErrorCode.PAYMENT_ALREADY_SETTLED,
            status_code=409,
            severity=ErrorSeverity.HIGH,
            is_critical=True,
            details={
                "order_id": order_id,
                "settled_reference": settled_reference,
                "incoming_reference": incoming_reference,
            },
        )


class ReconciliationFailedException(AppException):
    """
    Excepción para fallos inesperados durante la reconciliación de un pago.
    """

    def __init__(self, order_id: int, gateway_reference: Optional[str], cause: Exception):
        super().__init__(
            message=f"Reconciliation failed for order {order_id}",
            error_code=ErrorCode.RECONCILIATION_FAILED,
            status_code=500,
            severity=ErrorSeverity.CRITICAL,
            is_retryable=True,
            is_critical=True,
            details={
                "order_id": order_id,
                "gateway_reference": gateway_reference,
                "cause": type(cause).__name__,
            },
        )


class GatewayException(AppException):
    """
    Excepción para errores devueltos por una pasarela de pago.
    """

    def __init__(
        self,
        message: str,
        gateway: str,
        api_response_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        **kwargs,
    ):
        """
        Inicializa la excepción de pasarela.

        Args:
            message: Mensaje de error
            gateway: Nombre de la pasarela (paypal, stripe)
            api_response_code: Código HTTP devuelto por la pasarela
            endpoint: Endpoint que falló
            **kwargs: Argumentos adicionales para AppException
        """
        severity = ErrorSeverity.MEDIUM
        if api_response_code and api_response_code >= 500:
            severity = ErrorSeverity.HIGH

        kwargs.setdefault("error_code", ErrorCode.GATEWAY_ERROR)
        kwargs.setdefault("status_code", 502)
        kwargs.setdefault("severity", severity)
        kwargs.setdefault("is_retryable", True)
        super().__init__(message=message, **kwargs)

        self.gateway = gateway
        self.api_response_code = api_response_code
        self.endpoint = endpoint

        self.details.update({"gateway": gateway, "api_response_code": api_response_code, "endpoint": endpoint})


class GatewayTimeoutException(GatewayException):
    """
    Excepción cuando la pasarela no responde dentro del tiempo límite.
    """

    def __init__(self, gateway: str, operation: str, timeout: float):
        super().__init__(
            message=f"{gateway} did not answer '{operation}' within {timeout}s",
            gateway=gateway,
            endpoint=operation,
            error_code=ErrorCode.GATEWAY_TIMEOUT,
            status_code=504,
        )
        self.details["timeout_seconds"] = timeout


class WebhookSignatureInvalidException(AppException):
    """
    Excepción para webhooks cuya firma no puede verificarse.
    """

    def __init__(self, gateway: str, reason: str = "signature verification failed"):
        super().__init__(
            message=f"Invalid {gateway} webhook: {reason}",
            error_code=ErrorCode.INVALID_WEBHOOK_SIGNATURE,
            status_code=401,
            severity=ErrorSeverity.MEDIUM,
            details={"gateway": gateway},
        )


# === ERRORES DE INFRAESTRUCTURA ===


class DatabaseException(AppException):
    """
    Excepción para errores de base de datos.
    """

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.DATABASE_ERROR)
        kwargs.setdefault("status_code", 503)
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault("is_retryable", True)
        super().__init__(message=message, **kwargs)
        self.details["operation"] = operation


class ResourceExhaustedException(DatabaseException):
    """
    Excepción cuando no hay conexiones libres en el pool dentro del tiempo límite.
    """

    def __init__(self, operation: str, timeout: Optional[float] = None):
        super().__init__(
            message=f"No database connection available for '{operation}'",
            operation=operation,
            error_code=ErrorCode.RESOURCE_EXHAUSTED,
            status_code=503,
            severity=ErrorSeverity.HIGH,
        )
        self.details["pool_timeout"] = timeout


class ConfigurationException(AppException):
    """
    Excepción para funcionalidades que requieren configuración ausente.
    """

    def __init__(self, message: str, setting: str):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            status_code=503,
            severity=ErrorSeverity.HIGH,
            details={"setting": setting},
        )


class UnauthorizedException(AppException):
    """
    Excepción para llamadas administrativas sin credenciales válidas.
    """

    def __init__(self, message: str = "Invalid or missing admin token"):
        super().__init__(
            message=message,
            error_code=ErrorCode.UNAUTHORIZED,
            status_code=401,
            severity=ErrorSeverity.MEDIUM,
        )


# === FUNCIONES DE UTILIDAD ===


def convert_to_app_exception(exception: Exception, context: Optional[Dict[str, Any]] = None) -> AppException:
    """
    Convierte una excepción estándar a AppException.

    Args:
        exception: Excepción a convertir
        context: Contexto adicional

    Returns:
        AppException: Excepción convertida
    """
    context = context or {}
    exception_type = type(exception).__name__
    message = str(exception)

    if isinstance(exception, AppException):
        exception.details.update(context)
        return exception

    if isinstance(exception, ValueError):
        return ValidationException(
            message=message,
            field=context.get("field", "unknown"),
            invalid_value=context.get("value"),
            details=context,
        )

    return AppException(
        message=f"{exception_type}: {message}",
        details={"original_exception": exception_type, **context},
    )


def create_error_response(exception: Union[AppException, Exception], include_traceback: bool = False) -> Dict[str, Any]:
    """
    Crea respuesta de error estandarizada.

    Args:
        exception: Excepción a convertir
        include_traceback: Si incluir traceback

    Returns:
        Dict: Respuesta de error
    """
    error_dict = convert_to_app_exception(exception).to_dict()

    if not include_traceback:
        error_dict.pop("traceback", None)

    return {"error": True, **error_dict}


def log_error(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
    level: int = logging.ERROR,
) -> None:
    """
    Loggea un error de manera consistente.

    Args:
        exception: Excepción a loggear
        context: Contexto adicional
        level: Nivel de logging
    """
    context = context or {}

    log_data = {
        "exception_type": type(exception).__name__,
        "exception_message": str(exception),
        "traceback": "".join(traceback.format_exception(type(exception), exception, exception.__traceback__)),
        **context,
    }

    if isinstance(exception, AppException):
        message = f"{exception.error_code.value}: {exception.message}"
        log_data.update(
            {
                "error_code": exception.error_code.value,
                "severity": exception.severity.value,
                "is_retryable": exception.is_retryable,
                "is_critical": exception.is_critical,
            }
        )
    else:
        message = f"Unhandled exception: {type(exception).__name__}: {str(exception)}"

    logger.log(level, message, extra=log_data)
