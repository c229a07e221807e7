from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app.extensions.db import db
from app.models.pago import Pago
from app.models.propiedad import Propiedad
from app.models.reserva import Reserva
from app.services import eventos, notificacion_service
from app.utils.errors import ApiError, FalloAlmacen, SolicitudPendienteDuplicada, TransicionInvalida
from app.utils.fechas import a_fecha, sumar_meses
from app.utils.security import require_usuario


ESTADOS_RESERVA = ("pendiente", "aceptada", "rechazada", "cancelada")
ESTADOS_TERMINALES = ("cancelada", "rechazada")

# Estado de la propiedad que implica cada transición de la reserva
ESTADO_PROPIEDAD_POR_RESERVA = {
    "aceptada": "reservado",
    "rechazada": "disponible",
    "cancelada": "disponible",
}


def _propiedad_resumen(propiedad: Propiedad | None) -> dict | None:
    if not propiedad:
        return None
    fotos = list(propiedad.galeria_fotos or [])
    prop = propiedad.propietario
    return {
        "id": propiedad.id,
        "titulo": propiedad.titulo,
        "direccion": propiedad.direccion,
        "ciudad": propiedad.ciudad,
        "precio_mensual": float(propiedad.precio_mensual) if propiedad.precio_mensual is not None else None,
        "estado": propiedad.estado,
        "foto": fotos[0] if fotos else None,
        "id_propietario": propiedad.id_propietario,
        "propietario": {
            "id": prop.id,
            "nombre_completo": prop.nombre_completo,
            "email": prop.email,
            "numero_telefono": prop.numero_telefono,
        }
        if prop
        else None,
    }


def reserva_to_dict(reserva: Reserva) -> dict:
    usuario = reserva.usuario
    return {
        "id": reserva.id,
        "id_usuario": reserva.id_usuario,
        "id_propiedad": reserva.id_propiedad,
        "fecha_llegada": reserva.fecha_llegada.isoformat() if reserva.fecha_llegada else None,
        "fecha_salida": reserva.fecha_salida.isoformat() if reserva.fecha_salida else None,
        "duracion_meses": reserva.duracion_meses,
        "costo_total": float(reserva.costo_total) if reserva.costo_total is not None else 0.0,
        "monto_mensual": reserva.monto_mensual,
        "estado_reserva": reserva.estado_reserva,
        "estado_pago": bool(reserva.estado_pago),
        "created_at": reserva.created_at.isoformat() if reserva.created_at else None,
        "updated_at": reserva.updated_at.isoformat() if reserva.updated_at else None,
        "propiedad": _propiedad_resumen(reserva.propiedad),
        "usuario": {
            "id": usuario.id,
            "nombre_completo": usuario.nombre_completo,
            "email": usuario.email,
            "numero_telefono": usuario.numero_telefono,
        }
        if usuario
        else None,
    }


def _get_reserva(id_reserva: int) -> Reserva:
    reserva: Reserva | None = Reserva.query.get(id_reserva)
    if not reserva:
        raise ApiError("Reserva no encontrada.", status_code=404)
    return reserva


def _es_propietario(reserva: Reserva, id_usuario: int) -> bool:
    return bool(reserva.propiedad) and reserva.propiedad.id_propietario == id_usuario


def _otra_reserva_aceptada(reserva: Reserva) -> bool:
    return (
        Reserva.query.filter(
            Reserva.id_propiedad == reserva.id_propiedad,
            Reserva.id != reserva.id,
            Reserva.estado_reserva == "aceptada",
        ).first()
        is not None
    )


def _transicionar(reserva: Reserva, nuevo_estado: str) -> None:
    """UPDATE condicional: solo aplica si la reserva sigue 'pendiente'."""

    estado_actual = reserva.estado_reserva
    filas = (
        Reserva.query.filter(Reserva.id == reserva.id, Reserva.estado_reserva == "pendiente")
        .update(
            {Reserva.estado_reserva: nuevo_estado, Reserva.updated_at: datetime.utcnow()},
            synchronize_session=False,
        )
    )
    if filas != 1:
        db.session.rollback()
        raise TransicionInvalida(
            f"La reserva ya no está pendiente (estado actual: {estado_actual}).",
            payload={"id_reserva": reserva.id, "estado_actual": estado_actual},
        )


def _sincronizar_propiedad(reserva: Reserva, estado_reserva: str) -> bool:
    """Ajusta Propiedad.estado dentro de un SAVEPOINT de la transacción actual.

    Si falla, se registra y se devuelve False: el cambio de la reserva manda.
    """

    destino = ESTADO_PROPIEDAD_POR_RESERVA.get(estado_reserva)
    if destino is None:
        return True

    try:
        with db.session.begin_nested():
            # Liberar solo si ninguna otra reserva aceptada ocupa la propiedad
            if destino == "disponible" and _otra_reserva_aceptada(reserva):
                return True
            Propiedad.query.filter(Propiedad.id == reserva.id_propiedad).update(
                {Propiedad.estado: destino, Propiedad.updated_at: datetime.utcnow()},
                synchronize_session=False,
            )
    except SQLAlchemyError as err:
        current_app.logger.warning(
            "[reservas] sync propiedad fallo reserva=%s propiedad=%s destino=%s: %s",
            reserva.id,
            reserva.id_propiedad,
            destino,
            err,
        )
        return False
    return True


def crear_reserva(data: dict, id_usuario_actual: int) -> dict:
    """
    Crea una solicitud de reserva en estado 'pendiente'.

    - duracion_meses >= 1 (se valida antes de cualquier escritura).
    - Solo una reserva 'pendiente' por (usuario, propiedad).
    - fecha_salida = llegada + N meses (informativa).
    - costo_total = precio_mensual * N.
    La propiedad sigue 'disponible' hasta que el dueño acepte.
    """

    try:
        duracion = int(data.get("duracion_meses"))
    except (TypeError, ValueError):
        raise ApiError("La duración debe ser un número entero de meses.", status_code=400)
    if duracion < 1:
        raise ApiError("La duración mínima es de 1 mes.", status_code=400)

    try:
        fecha_llegada = a_fecha(data.get("fecha_llegada"))
    except (TypeError, ValueError):
        raise ApiError("La fecha de llegada no es válida.", status_code=400)

    # Bloquea la fila de la propiedad hasta el commit: dos solicitudes del
    # mismo usuario no pasan juntas la revisión de 'pendiente' duplicada.
    propiedad: Propiedad | None = (
        Propiedad.query.filter(Propiedad.id == data.get("id_propiedad"))
        .with_for_update()
        .first()
    )
    if not propiedad:
        raise ApiError("La propiedad especificada no existe.", status_code=404)

    require_usuario(id_usuario_actual)

    if propiedad.id_propietario == id_usuario_actual:
        raise ApiError("No puedes reservar tu propia propiedad.", status_code=403)

    if propiedad.estado == "reservado":
        raise ApiError("La propiedad ya está reservada.", status_code=409, payload={"code": "PROPERTY_RESERVED"})

    existente = Reserva.query.filter_by(
        id_usuario=id_usuario_actual,
        id_propiedad=propiedad.id,
        estado_reserva="pendiente",
    ).first()
    if existente:
        raise SolicitudPendienteDuplicada(payload={"id_reserva": existente.id})

    reserva = Reserva(
        id_usuario=id_usuario_actual,
        id_propiedad=propiedad.id,
        fecha_llegada=fecha_llegada,
        fecha_salida=sumar_meses(fecha_llegada, duracion),
        duracion_meses=duracion,
        costo_total=round(float(propiedad.precio_mensual) * duracion, 2),
        estado_reserva="pendiente",
        estado_pago=False,
    )

    db.session.add(reserva)
    db.session.commit()

    current_app.logger.info(
        "[reservas] creada id=%s usuario=%s propiedad=%s meses=%s",
        reserva.id,
        id_usuario_actual,
        propiedad.id,
        duracion,
    )

    notificacion_service.crear_notificacion(
        propiedad.id_propietario,
        "Nueva solicitud de reserva",
        f'Tienes una nueva solicitud de reserva para "{propiedad.titulo}".',
        "reserva",
        id_referencia=reserva.id,
    )
    eventos.publicar(
        "reservas",
        "INSERT",
        {"id_reserva": reserva.id, "id_propiedad": propiedad.id, "estado_reserva": "pendiente"},
        destinatarios=[propiedad.id_propietario, id_usuario_actual],
    )

    return reserva_to_dict(reserva)


def obtener_reserva(id_reserva: int, id_usuario_actual: int) -> dict:
    reserva = _get_reserva(id_reserva)

    if reserva.id_usuario != id_usuario_actual and not _es_propietario(reserva, id_usuario_actual):
        raise ApiError("No tienes permisos para ver esta reserva.", status_code=403)

    return reserva_to_dict(reserva)


def listar_reservas_usuario(id_usuario: int) -> list[dict]:
    """Reservas hechas por el usuario (estudiante)."""

    reservas = (
        Reserva.query.filter_by(id_usuario=id_usuario)
        .order_by(Reserva.created_at.desc(), Reserva.id.desc())
        .all()
    )
    return [reserva_to_dict(r) for r in reservas]


def listar_reservas_propietario(id_propietario: int, id_propiedad: int | None = None) -> list[dict]:
    """Reservas sobre las propiedades del dueño (todas o solo una)."""

    if id_propiedad is not None:
        propiedad: Propiedad | None = Propiedad.query.get(id_propiedad)
        if not propiedad:
            raise ApiError("Propiedad no encontrada.", status_code=404)
        if propiedad.id_propietario != id_propietario:
            raise ApiError("No autorizado", status_code=403)
        ids_propiedades = [propiedad.id]
    else:
        ids_propiedades = [
            pid for (pid,) in db.session.query(Propiedad.id).filter(Propiedad.id_propietario == id_propietario).all()
        ]

    if not ids_propiedades:
        return []

    reservas = (
        Reserva.query.filter(Reserva.id_propiedad.in_(ids_propiedades))
        .order_by(Reserva.created_at.desc(), Reserva.id.desc())
        .all()
    )
    return [reserva_to_dict(r) for r in reservas]


def actualizar_estado_reserva(id_reserva: int, nuevo_estado: str, id_usuario_actual: int) -> dict:
    """
    El dueño acepta o rechaza una reserva pendiente.

    Reserva y propiedad se escriben en la misma transacción; la propiedad va
    en un SAVEPOINT para que un fallo ahí no revierta la decisión del dueño.
    """

    if nuevo_estado not in ("aceptada", "rechazada"):
        raise ApiError("Estado inválido. Usa: aceptada|rechazada", status_code=400)

    reserva = _get_reserva(id_reserva)
    if not _es_propietario(reserva, id_usuario_actual):
        raise ApiError("Solo el propietario puede aceptar o rechazar esta reserva.", status_code=403)

    if nuevo_estado == "aceptada" and reserva.estado_reserva == "pendiente" and _otra_reserva_aceptada(reserva):
        raise TransicionInvalida(
            "La propiedad ya tiene una reserva aceptada.",
            payload={"id_reserva": reserva.id},
        )

    _transicionar(reserva, nuevo_estado)
    sincronizada = _sincronizar_propiedad(reserva, nuevo_estado)
    db.session.commit()

    current_app.logger.info(
        "[reservas] estado id=%s -> %s por=%s propiedad_sync=%s",
        reserva.id,
        nuevo_estado,
        id_usuario_actual,
        sincronizada,
    )

    titulo = "Reserva aceptada" if nuevo_estado == "aceptada" else "Reserva rechazada"
    mensaje = (
        f'Tu reserva en "{reserva.propiedad.titulo}" fue aceptada. Ya puedes registrar tus pagos.'
        if nuevo_estado == "aceptada"
        else f'Tu reserva en "{reserva.propiedad.titulo}" fue rechazada.'
    )
    notificacion_service.crear_notificacion(
        reserva.id_usuario,
        titulo,
        mensaje,
        "reserva",
        id_referencia=reserva.id,
    )
    eventos.publicar(
        "reservas",
        "UPDATE",
        {"id_reserva": reserva.id, "id_propiedad": reserva.id_propiedad, "estado_reserva": nuevo_estado},
        destinatarios=[reserva.id_usuario, id_usuario_actual],
    )

    return reserva_to_dict(reserva)


def cancelar_reserva(id_reserva: int, id_usuario_actual: int) -> dict:
    """Quien reservó cancela su solicitud; solo mientras esté 'pendiente'."""

    reserva = _get_reserva(id_reserva)
    if reserva.id_usuario != id_usuario_actual:
        raise ApiError("Solo quien hizo la reserva puede cancelarla.", status_code=403)

    _transicionar(reserva, "cancelada")
    _sincronizar_propiedad(reserva, "cancelada")
    db.session.commit()

    current_app.logger.info("[reservas] cancelada id=%s por=%s", reserva.id, id_usuario_actual)

    id_propietario = reserva.propiedad.id_propietario
    notificacion_service.crear_notificacion(
        id_propietario,
        "Reserva cancelada",
        f'Una solicitud de reserva para "{reserva.propiedad.titulo}" fue cancelada.',
        "reserva",
        id_referencia=reserva.id,
    )
    eventos.publicar(
        "reservas",
        "UPDATE",
        {"id_reserva": reserva.id, "id_propiedad": reserva.id_propiedad, "estado_reserva": "cancelada"},
        destinatarios=[id_propietario, id_usuario_actual],
    )

    return reserva_to_dict(reserva)


def limpiar_reservas_terminales(id_usuario_actual: int, es_propietario: bool) -> dict:
    """
    Borra las reservas canceladas/rechazadas visibles para el usuario.

    Orden obligatorio: primero los pagos de esas reservas, luego las reservas
    (FK pagos.id_reserva). Ambos borrados van en una sola transacción.
    """

    query = db.session.query(Reserva.id).filter(Reserva.estado_reserva.in_(ESTADOS_TERMINALES))
    if es_propietario:
        ids_propiedades = [
            pid for (pid,) in db.session.query(Propiedad.id).filter(Propiedad.id_propietario == id_usuario_actual).all()
        ]
        if not ids_propiedades:
            return {"count": 0, "pagos_eliminados": 0}
        query = query.filter(Reserva.id_propiedad.in_(ids_propiedades))
    else:
        query = query.filter(Reserva.id_usuario == id_usuario_actual)

    ids = [rid for (rid,) in query.all()]
    if not ids:
        return {"count": 0, "pagos_eliminados": 0}

    try:
        pagos_eliminados = Pago.query.filter(Pago.id_reserva.in_(ids)).delete(synchronize_session=False)
        total = Reserva.query.filter(Reserva.id.in_(ids)).delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as err:
        db.session.rollback()
        current_app.logger.error("[reservas] limpieza fallo usuario=%s: %s", id_usuario_actual, err)
        raise FalloAlmacen("No se pudieron eliminar las reservas.")

    current_app.logger.info(
        "[reservas] limpieza usuario=%s propietario=%s reservas=%s pagos=%s",
        id_usuario_actual,
        es_propietario,
        total,
        pagos_eliminados,
    )
    eventos.publicar(
        "reservas",
        "DELETE",
        {"ids": ids},
        destinatarios=[id_usuario_actual],
    )
    return {"count": int(total or 0), "pagos_eliminados": int(pagos_eliminados or 0)}
