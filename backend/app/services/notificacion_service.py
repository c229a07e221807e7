import os
from sqlalchemy.exc import OperationalError, ProgrammingError
from flask import current_app

from app.extensions.db import db
from app.models.notificacion import Notificacion
from app.services import eventos
from app.utils.errors import ApiError


def _debug() -> bool:
	return os.getenv("NOTIFICACIONES_DEBUG", "0") == "1"


def notificacion_to_dict(n: Notificacion) -> dict:
	return {
		"id": n.id,
		"titulo": n.titulo,
		"mensaje": n.mensaje,
		"tipo": n.tipo,
		"id_referencia": n.id_referencia,
		"tipo_referencia": n.tipo_referencia,
		"estado_lectura": bool(n.estado_lectura),
		"created_at": n.created_at.isoformat() if n.created_at else None,
	}


def crear_notificacion(
	id_usuario: int,
	titulo: str,
	mensaje: str,
	tipo: str,
	*,
	id_referencia: int | None = None,
	tipo_referencia: str | None = "reservacion",
) -> Notificacion | None:
	"""Crea la notificación y la publica en el bus. Nunca rompe el flujo que la origina."""

	t = (titulo or "").strip()
	m = (mensaje or "").strip()
	if not t or not m:
		if _debug():
			current_app.logger.info("[notificaciones] skip create: titulo/mensaje vacío")
		return None
	if len(m) > 300:
		m = m[:300]

	try:
		n = Notificacion(
			id_usuario_destinatario=id_usuario,
			titulo=t[:120],
			mensaje=m,
			tipo=(tipo or "").strip() or "reserva",
			id_referencia=id_referencia,
			tipo_referencia=tipo_referencia,
			estado_lectura=False,
		)
		db.session.add(n)
		db.session.commit()
	except (OperationalError, ProgrammingError):
		# Si falta tabla (sin migraciones), no romper flujo.
		db.session.rollback()
		current_app.logger.warning("[notificaciones] create failed usuario=%s tipo=%s", id_usuario, tipo)
		return None

	if _debug():
		current_app.logger.info("[notificaciones] created id=%s usuario=%s tipo=%s", n.id, id_usuario, n.tipo)

	eventos.publicar(
		"notificaciones",
		"INSERT",
		notificacion_to_dict(n),
		destinatarios=[id_usuario],
	)
	return n


def listar_notificaciones(id_usuario: int, limit: int = 50) -> dict:
	try:
		q = (
			Notificacion.query.filter_by(id_usuario_destinatario=id_usuario)
			.order_by(Notificacion.created_at.desc(), Notificacion.id.desc())
			.limit(max(1, min(int(limit), 100)))
		)
		items = q.all()
		unread = Notificacion.query.filter_by(id_usuario_destinatario=id_usuario, estado_lectura=False).count()
	except (OperationalError, ProgrammingError):
		current_app.logger.warning("[notificaciones] list failed (faltan migraciones/tablas)")
		return {"items": [], "unread_count": 0}

	if _debug():
		current_app.logger.info(
			"[notificaciones] list usuario=%s items=%s unread=%s",
			id_usuario,
			len(items),
			unread,
		)

	return {
		"items": [notificacion_to_dict(n) for n in items],
		"unread_count": int(unread),
	}


def marcar_leida(id_notificacion: int, id_usuario: int) -> dict:
	n = Notificacion.query.get(id_notificacion)
	if not n or n.id_usuario_destinatario != id_usuario:
		raise ApiError("Notificación no encontrada.", status_code=404)

	if not n.estado_lectura:
		n.estado_lectura = True
		db.session.commit()
		if _debug():
			current_app.logger.info("[notificaciones] marked read id=%s usuario=%s", id_notificacion, id_usuario)
	return notificacion_to_dict(n)


def marcar_todas_leidas(id_usuario: int) -> int:
	total = (
		Notificacion.query.filter_by(id_usuario_destinatario=id_usuario, estado_lectura=False)
		.update({Notificacion.estado_lectura: True}, synchronize_session=False)
	)
	db.session.commit()
	return int(total or 0)


def eliminar_todas(id_usuario: int) -> int:
	total = (
		Notificacion.query.filter_by(id_usuario_destinatario=id_usuario)
		.delete(synchronize_session=False)
	)
	db.session.commit()
	return int(total or 0)
