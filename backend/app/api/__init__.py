from .auth_routes import bp as auth_bp
from .propiedad_routes import bp as propiedades_bp
from .reserva_routes import bp as reservas_bp
from .pago_routes import bp as pagos_bp
from .notificacion_routes import bp as notificaciones_bp

__all__ = [
    "auth_bp",
    "propiedades_bp",
    "reservas_bp",
    "pagos_bp",
    "notificaciones_bp",
]
