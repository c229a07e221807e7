from datetime import datetime

from app.extensions import db


class Propiedad(db.Model):
    __tablename__ = "propiedades"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)

    id_propietario = db.Column(
        db.Integer,
        db.ForeignKey("usuarios.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    titulo = db.Column(db.String(150), nullable=False)
    descripcion = db.Column(db.Text, nullable=False)
    direccion = db.Column(db.String(255), nullable=False)
    ciudad = db.Column(db.String(100), nullable=False)
    estado_ubicacion = db.Column(db.String(100), nullable=True)

    tipo_propiedad = db.Column(db.String(40), nullable=True)  # cuarto | departamento | casa
    capacidad = db.Column(db.Integer, nullable=False, default=1)

    precio_mensual = db.Column(db.Numeric(10, 2), nullable=False)

    servicios = db.Column(db.JSON, nullable=True)  # list[str]
    galeria_fotos = db.Column(db.JSON, nullable=True)  # list[str] (URLs)

    # Disponibilidad desnormalizada: 'disponible' | 'reservado'
    estado = db.Column(db.String(20), nullable=False, default="disponible", index=True)

    created_at = db.Column(db.DateTime, nullable=True, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=True,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    propietario = db.relationship("Usuario", back_populates="propiedades", lazy="joined")
    reservas = db.relationship("Reserva", back_populates="propiedad")

    def __repr__(self) -> str:
        return f"<Propiedad id={self.id} propietario={self.id_propietario} estado={self.estado}>"
