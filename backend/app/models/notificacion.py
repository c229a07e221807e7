from datetime import datetime

from app.extensions import db


class Notificacion(db.Model):
	__tablename__ = "notificaciones"

	id = db.Column(db.Integer, primary_key=True, autoincrement=True)
	id_usuario_destinatario = db.Column(
		db.Integer,
		db.ForeignKey("usuarios.id", ondelete="RESTRICT"),
		nullable=False,
		index=True,
	)

	titulo = db.Column(db.String(120), nullable=False)
	mensaje = db.Column(db.String(300), nullable=False)
	tipo = db.Column(db.String(30), nullable=False)  # reserva | pago

	# Objeto al que apunta la notificación (p.ej. tipo_referencia='reservacion')
	id_referencia = db.Column(db.Integer, nullable=True)
	tipo_referencia = db.Column(db.String(30), nullable=True)

	estado_lectura = db.Column(db.Boolean, default=False, nullable=False, index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	def __repr__(self) -> str:
		return (
			f"<Notificacion id={self.id} usuario={self.id_usuario_destinatario} "
			f"tipo={self.tipo} leida={self.estado_lectura}>"
		)
