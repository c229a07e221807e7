from datetime import datetime

from app.extensions import db


class Pago(db.Model):
    __tablename__ = "pagos"
    __table_args__ = (
        db.UniqueConstraint("id_reserva", "mes_numero", name="uq_pagos_reserva_mes"),
    )

    id = db.Column(db.Integer, primary_key=True)

    id_reserva = db.Column(
        db.Integer,
        db.ForeignKey("reservas.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Mes de la reserva al que corresponde (1..duracion_meses)
    mes_numero = db.Column(db.Integer, nullable=False)

    metodo_pago = db.Column(db.String(50), nullable=False)
    monto_pagado = db.Column(db.Numeric(10, 2), nullable=False)
    url_comprobante_pago = db.Column(db.String(500), nullable=True)

    # Persistidos: 'pendiente','verificado','rechazado'.
    # 'pendiente_registro' solo existe en el calendario (mes sin fila).
    estado_pago = db.Column(db.String(30), nullable=False, default="pendiente")

    verificado_por = db.Column(
        db.Integer,
        db.ForeignKey("usuarios.id", ondelete="RESTRICT"),
        nullable=True,
    )
    fecha_verificacion = db.Column(db.DateTime, nullable=True)
    motivo_rechazo = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, nullable=True, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=True,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    reserva = db.relationship("Reserva", back_populates="pagos")

    def __repr__(self) -> str:
        return f"<Pago id={self.id} reserva={self.id_reserva} mes={self.mes_numero} estado={self.estado_pago}>"
