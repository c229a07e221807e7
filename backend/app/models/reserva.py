from datetime import datetime

from app.extensions import db


class Reserva(db.Model):
    __tablename__ = "reservas"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)

    # Quien solicita (estudiante)
    id_usuario = db.Column(
        db.Integer,
        db.ForeignKey("usuarios.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    id_propiedad = db.Column(
        db.Integer,
        db.ForeignKey("propiedades.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    fecha_llegada = db.Column(db.Date, nullable=False)
    # Informativa: llegada + duracion_meses. La facturación usa el calendario mensual.
    fecha_salida = db.Column(db.Date, nullable=False)
    duracion_meses = db.Column(db.Integer, nullable=False, default=1)

    costo_total = db.Column(db.Numeric(10, 2), nullable=False)

    # 'pendiente' | 'aceptada' | 'rechazada' | 'cancelada'
    estado_reserva = db.Column(db.String(20), nullable=False, default="pendiente", index=True)

    # Bandera agregada heredada; el estado real vive en los pagos por mes.
    estado_pago = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=True, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=True,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    # Relaciones
    propiedad = db.relationship("Propiedad", back_populates="reservas", lazy="joined")
    usuario = db.relationship("Usuario", foreign_keys=[id_usuario], lazy="joined")
    pagos = db.relationship("Pago", back_populates="reserva", order_by="Pago.mes_numero")

    @property
    def monto_mensual(self) -> float:
        meses = int(self.duracion_meses or 1)
        return round(float(self.costo_total or 0) / max(meses, 1), 2)

    def __repr__(self) -> str:
        return f"<Reserva id={self.id} propiedad={self.id_propiedad} estado={self.estado_reserva}>"
