from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.utils.responses import error_response


class ApiError(Exception):
    """
    Excepción genérica para errores de negocio.
    """
    def __init__(self, message, status_code=400, errors=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors or {}
        self.payload = payload or {}


class SolicitudPendienteDuplicada(ApiError):
    """Ya existe una reserva pendiente para el mismo usuario y propiedad."""

    def __init__(self, message="Ya tienes una solicitud pendiente para esta propiedad.", payload=None):
        super().__init__(message, 409, payload={"code": "DUPLICATE_PENDING_REQUEST", **(payload or {})})


class MesesSaldados(ApiError):
    """Todos los meses de la reserva ya tienen un pago no rechazado."""

    def __init__(self, message="Todos los meses de esta reserva ya tienen un pago registrado.", payload=None):
        super().__init__(message, 409, payload={"code": "ALL_SLOTS_SETTLED", **(payload or {})})


class PagoFueraDeVentana(ApiError):
    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload={"code": "PAYMENT_WINDOW_CLOSED", **(payload or {})})


class TransicionInvalida(ApiError):
    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload={"code": "INVALID_TRANSITION", **(payload or {})})


class FalloAlmacen(ApiError):
    """Falla del almacenamiento (BD o archivos); no se reintenta."""

    def __init__(self, message="No se pudo completar la operación de almacenamiento.", payload=None):
        super().__init__(message, 503, payload={"code": "REMOTE_STORE_FAILURE", **(payload or {})})


def register_error_handlers(app):

    @app.errorhandler(ApiError)
    def handle_api_error(err: ApiError):
        return error_response(
            err.message,
            err.status_code,
            errors=err.errors,
            payload=getattr(err, "payload", None),
        )

    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err: ValidationError):
        return error_response(
            "Datos inválidos",
            400,
            errors=err.messages if hasattr(err, "messages") else str(err),
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response(err.description or "Error HTTP", err.code)

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(err: SQLAlchemyError):
        from app.extensions import db

        db.session.rollback()
        app.logger.error("[almacen] fallo de base de datos: %s", err)

        return error_response(
            "El almacén de datos no está disponible. Intenta de nuevo.",
            503,
            payload={"code": "REMOTE_STORE_FAILURE"},
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Imprime la traza completa en la consola
        app.logger.exception(err)

        return error_response("Error interno del servidor", 500)
