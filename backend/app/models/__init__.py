from .usuario import Usuario
from .propiedad import Propiedad
from .reserva import Reserva
from .pago import Pago
from .notificacion import Notificacion

__all__ = ["Usuario", "Propiedad", "Reserva", "Pago", "Notificacion"]
