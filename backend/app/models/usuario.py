from app.extensions import db
from sqlalchemy import func


class Usuario(db.Model):
    __tablename__ = "usuarios"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)

    nombre_completo = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    hash_contrasena = db.Column(db.String(255), nullable=False)

    numero_telefono = db.Column(db.String(20))
    url_foto_perfil = db.Column(db.String(500))

    # 'estudiante' (busca y reserva) | 'propietario' (publica y verifica pagos)
    rol = db.Column(db.String(20), nullable=False, default="estudiante")

    created_at = db.Column(
        db.DateTime,
        server_default=func.current_timestamp()
    )

    propiedades = db.relationship("Propiedad", back_populates="propietario")

    def __repr__(self) -> str:
        return f"<Usuario id={self.id} email={self.email} rol={self.rol}>"
