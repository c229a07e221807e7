from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.extensions.db import db
from app.models.pago import Pago
from app.models.reserva import Reserva
from app.services import almacenamiento_service, eventos, notificacion_service
from app.utils.errors import ApiError, MesesSaldados, PagoFueraDeVentana, TransicionInvalida
from app.utils.fechas import a_fecha, sumar_meses


PAGO_VENTANA_DIAS_DEFAULT = 2

ESTADO_SIN_REGISTRO = "pendiente_registro"
ESTADOS_PAGO = ("pendiente", "verificado", "rechazado")
# Estados que cuentan como "por pagar" para marcar un mes vencido
ESTADOS_POR_PAGAR = ("pendiente", ESTADO_SIN_REGISTRO)


def _get_pago_ventana_dias() -> int:
    try:
        v = int(current_app.config.get("PAGO_VENTANA_DIAS", PAGO_VENTANA_DIAS_DEFAULT))
        return max(0, v)
    except (TypeError, ValueError):
        return PAGO_VENTANA_DIAS_DEFAULT


def _valor(obj, campo: str):
    if isinstance(obj, dict):
        return obj.get(campo)
    return getattr(obj, campo, None)


def _hoy() -> date:
    return datetime.utcnow().date()


def pago_to_dict(pago: Pago) -> dict:
    return {
        "id": pago.id,
        "id_reserva": pago.id_reserva,
        "mes_numero": pago.mes_numero,
        "metodo_pago": pago.metodo_pago,
        "monto_pagado": float(pago.monto_pagado) if pago.monto_pagado is not None else None,
        "url_comprobante_pago": pago.url_comprobante_pago,
        "estado_pago": pago.estado_pago,
        "verificado_por": pago.verificado_por,
        "fecha_verificacion": pago.fecha_verificacion.isoformat() if pago.fecha_verificacion else None,
        "motivo_rechazo": pago.motivo_rechazo,
        "created_at": pago.created_at.isoformat() if pago.created_at else None,
        "updated_at": pago.updated_at.isoformat() if pago.updated_at else None,
    }


def _pagos_por_mes(pagos) -> dict:
    por_mes = {}
    for p in pagos or []:
        mes = _valor(p, "mes_numero")
        if mes is None:
            continue
        por_mes[int(mes)] = p
    return por_mes


def construir_calendario_mensual(reserva, pagos, hoy: date | None = None) -> list[dict]:
    """
    Calendario completo de la reserva: un elemento por mes (1..duracion_meses).

    Sobrepone los pagos persistidos (uno por mes) al calendario implícito:
    vencimiento del mes N = fecha_llegada + (N-1) meses. Un mes sin fila queda
    como 'pendiente_registro'. Función pura: no escribe ni modifica sus entradas.
    """

    hoy = a_fecha(hoy) if hoy else _hoy()
    llegada = a_fecha(_valor(reserva, "fecha_llegada"))
    duracion = max(int(_valor(reserva, "duracion_meses") or 1), 1)

    monto = _valor(reserva, "monto_mensual")
    if monto is None:
        monto = round(float(_valor(reserva, "costo_total") or 0) / duracion, 2)

    por_mes = _pagos_por_mes(pagos)

    meses = []
    for mes in range(1, duracion + 1):
        vencimiento = sumar_meses(llegada, mes - 1)
        pago = por_mes.get(mes)
        estado = _valor(pago, "estado_pago") if pago is not None else ESTADO_SIN_REGISTRO
        meses.append(
            {
                "mes": mes,
                "fecha_vencimiento": vencimiento,
                "monto": float(monto),
                "estado": estado,
                "pago": pago,
                "vencido": hoy > vencimiento and estado in ESTADOS_POR_PAGAR,
            }
        )
    return meses


def seleccionar_mes_a_pagar(duracion_meses: int, pagos):
    """Primer mes sin fila o con fila 'rechazado'.

    Devuelve (mes, pago_previo | None), o None si todos los meses ya tienen un
    pago no rechazado.
    """

    por_mes = _pagos_por_mes(pagos)
    for mes in range(1, max(int(duracion_meses or 1), 1) + 1):
        previo = por_mes.get(mes)
        if previo is None or _valor(previo, "estado_pago") == "rechazado":
            return mes, previo
    return None


def resumen_calendario(meses: list[dict]) -> dict:
    conteo = dict.fromkeys(ESTADOS_PAGO + (ESTADO_SIN_REGISTRO,), 0)
    for m in meses:
        conteo[m["estado"]] = conteo.get(m["estado"], 0) + 1

    siguiente = next(
        (m["mes"] for m in meses if m["estado"] in (ESTADO_SIN_REGISTRO, "rechazado")),
        None,
    )
    return {
        "total_meses": len(meses),
        "verificados": conteo["verificado"],
        "pendientes": conteo["pendiente"],
        "rechazados": conteo["rechazado"],
        "sin_registro": conteo[ESTADO_SIN_REGISTRO],
        "vencidos": sum(1 for m in meses if m["vencido"]),
        "siguiente_mes": siguiente,
    }


def _mes_to_dict(m: dict) -> dict:
    pago = m["pago"]
    return {
        "mes": m["mes"],
        "fecha_vencimiento": m["fecha_vencimiento"].isoformat(),
        "monto": m["monto"],
        "estado": m["estado"],
        "vencido": m["vencido"],
        "pago": pago_to_dict(pago) if isinstance(pago, Pago) else pago,
    }


def _get_reserva(id_reserva: int) -> Reserva:
    reserva: Reserva | None = Reserva.query.get(id_reserva)
    if not reserva:
        raise ApiError("Reserva no encontrada.", status_code=404)
    return reserva


def _pagos_de(id_reserva: int) -> list[Pago]:
    return Pago.query.filter_by(id_reserva=id_reserva).order_by(Pago.mes_numero.asc()).all()


def es_propietario_de_reserva(id_usuario: int, reserva: Reserva | None) -> bool:
    if not reserva or not reserva.propiedad:
        return False
    return reserva.propiedad.id_propietario == id_usuario


def obtener_calendario(id_reserva: int, id_usuario_actual: int, hoy: date | None = None) -> dict:
    reserva = _get_reserva(id_reserva)

    es_propietario = es_propietario_de_reserva(id_usuario_actual, reserva)
    if reserva.id_usuario != id_usuario_actual and not es_propietario:
        raise ApiError("No tienes permisos para ver los pagos de esta reserva.", status_code=403)

    meses = construir_calendario_mensual(reserva, _pagos_de(reserva.id), hoy=hoy)
    return {
        "id_reserva": reserva.id,
        "estado_reserva": reserva.estado_reserva,
        "duracion_meses": reserva.duracion_meses,
        "monto_mensual": reserva.monto_mensual,
        "es_propietario": es_propietario,
        "meses": [_mes_to_dict(m) for m in meses],
        "resumen": resumen_calendario(meses),
    }


def _validar_ventana(mes: int, vencimiento: date, hoy: date) -> None:
    ventana = _get_pago_ventana_dias()
    if (vencimiento - hoy).days > ventana:
        desde = vencimiento - timedelta(days=ventana)
        raise PagoFueraDeVentana(
            f"El pago del mes {mes} se puede registrar a partir del {desde.isoformat()}.",
            payload={
                "mes": mes,
                "fecha_vencimiento": vencimiento.isoformat(),
                "disponible_desde": desde.isoformat(),
            },
        )


def registrar_pago(
    id_reserva: int,
    data: dict,
    id_usuario_actual: int,
    archivo=None,
    hoy: date | None = None,
) -> dict:
    """
    Registra el pago del siguiente mes pendiente de la reserva.

    El mes no lo elige quien paga: es el primero sin fila o con fila
    'rechazado'. Un rechazado se reenvía sobre la misma fila (mismo id);
    un mes nuevo crea fila. Para un mes nuevo se exige estar dentro de la
    ventana de PAGO_VENTANA_DIAS antes del vencimiento (o ya vencido).
    """

    hoy = a_fecha(hoy) if hoy else _hoy()
    reserva = _get_reserva(id_reserva)

    if reserva.id_usuario != id_usuario_actual:
        raise ApiError("Solo quien hizo la reserva puede registrar pagos.", status_code=403)

    if reserva.estado_reserva != "aceptada":
        raise ApiError(
            "La reserva debe estar aceptada para registrar pagos.",
            status_code=409,
            payload={"code": "RESERVATION_NOT_ACCEPTED", "estado_reserva": reserva.estado_reserva},
        )

    seleccion = seleccionar_mes_a_pagar(reserva.duracion_meses, _pagos_de(reserva.id))
    if seleccion is None:
        raise MesesSaldados(payload={"id_reserva": reserva.id})
    mes, previo = seleccion

    vencimiento = sumar_meses(reserva.fecha_llegada, mes - 1)
    if previo is None:
        _validar_ventana(mes, vencimiento, hoy)

    metodo = data["metodo_pago"].strip()
    monto = float(data["monto_pagado"])

    subido = archivo is not None
    if subido:
        url_comprobante = almacenamiento_service.guardar_comprobante(reserva.id, archivo)
    else:
        url_comprobante = (data.get("url_comprobante_pago") or "").strip() or None
    if not url_comprobante:
        raise ApiError("Debes adjuntar el comprobante de pago.", status_code=400)

    try:
        if previo is not None:
            id_previo = previo.id
            # Solo se reenvía si la fila sigue 'rechazado' al momento de escribir
            filas = (
                Pago.query.filter(Pago.id == id_previo, Pago.estado_pago == "rechazado")
                .update(
                    {
                        Pago.metodo_pago: metodo,
                        Pago.monto_pagado: monto,
                        Pago.url_comprobante_pago: url_comprobante,
                        Pago.estado_pago: "pendiente",
                        Pago.verificado_por: None,
                        Pago.fecha_verificacion: None,
                        Pago.motivo_rechazo: None,
                        Pago.updated_at: datetime.utcnow(),
                    },
                    synchronize_session=False,
                )
            )
            if filas != 1:
                raise TransicionInvalida(
                    f"El pago del mes {mes} ya no está rechazado. Actualiza e intenta de nuevo.",
                    payload={"id_pago": id_previo, "mes": mes},
                )
            db.session.commit()
            pago = previo
        else:
            pago = Pago(
                id_reserva=reserva.id,
                mes_numero=mes,
                metodo_pago=metodo,
                monto_pagado=monto,
                url_comprobante_pago=url_comprobante,
                estado_pago="pendiente",
            )
            db.session.add(pago)
            db.session.commit()
    except IntegrityError:
        # Otro envío ganó el mismo mes (uq_pagos_reserva_mes)
        db.session.rollback()
        if subido:
            almacenamiento_service.descartar(url_comprobante)
        raise ApiError(
            "Ese mes ya tiene un pago registrado. Actualiza e intenta de nuevo.",
            status_code=409,
            payload={"code": "MONTH_TAKEN", "mes": mes},
        )
    except (TransicionInvalida, SQLAlchemyError):
        db.session.rollback()
        if subido:
            almacenamiento_service.descartar(url_comprobante)
        raise

    current_app.logger.info(
        "[pagos] registrado reserva=%s mes=%s pago=%s reenvio=%s",
        reserva.id,
        mes,
        pago.id,
        previo is not None,
    )

    id_propietario = reserva.propiedad.id_propietario
    notificacion_service.crear_notificacion(
        id_propietario,
        "Nuevo pago registrado",
        f'Se registró el pago del mes {mes} para "{reserva.propiedad.titulo}". Revisa el comprobante.',
        "pago",
        id_referencia=reserva.id,
    )
    eventos.publicar(
        "pagos",
        "UPDATE" if previo is not None else "INSERT",
        {"id_reserva": reserva.id, "id_pago": pago.id, "mes": mes, "estado_pago": "pendiente"},
        destinatarios=[id_propietario, id_usuario_actual],
    )

    return pago_to_dict(pago)


def verificar_pago(
    id_pago: int,
    aprobado: bool,
    motivo_rechazo: str | None,
    id_usuario_actual: int,
) -> dict:
    """El dueño verifica o rechaza un pago 'pendiente'. No toca Reserva.estado_pago."""

    pago: Pago | None = Pago.query.get(id_pago)
    if not pago:
        raise ApiError("Pago no encontrado.", status_code=404)

    reserva = pago.reserva
    if not es_propietario_de_reserva(id_usuario_actual, reserva):
        raise ApiError("Solo el propietario puede verificar este pago.", status_code=403)

    motivo = (motivo_rechazo or "").strip()
    if not aprobado and not motivo:
        raise ApiError("Indica el motivo del rechazo.", status_code=400)

    ahora = datetime.utcnow()
    if aprobado:
        valores = {
            Pago.estado_pago: "verificado",
            Pago.verificado_por: id_usuario_actual,
            Pago.fecha_verificacion: ahora,
            Pago.motivo_rechazo: None,
            Pago.updated_at: ahora,
        }
    else:
        valores = {
            Pago.estado_pago: "rechazado",
            Pago.verificado_por: id_usuario_actual,
            Pago.fecha_verificacion: None,
            Pago.motivo_rechazo: motivo[:500],
            Pago.updated_at: ahora,
        }

    estado_actual = pago.estado_pago
    filas = (
        Pago.query.filter(Pago.id == pago.id, Pago.estado_pago == "pendiente")
        .update(valores, synchronize_session=False)
    )
    if filas != 1:
        db.session.rollback()
        raise TransicionInvalida(
            f"El pago no está pendiente de verificación (estado actual: {estado_actual}).",
            payload={"id_pago": pago.id, "estado_actual": estado_actual},
        )
    db.session.commit()

    nuevo_estado = "verificado" if aprobado else "rechazado"
    current_app.logger.info(
        "[pagos] %s pago=%s reserva=%s mes=%s por=%s",
        nuevo_estado,
        pago.id,
        reserva.id,
        pago.mes_numero,
        id_usuario_actual,
    )

    titulo = "Pago verificado" if aprobado else "Pago rechazado"
    mensaje = (
        f'Tu pago del mes {pago.mes_numero} para "{reserva.propiedad.titulo}" ha sido verificado.'
        if aprobado
        else f'Tu pago del mes {pago.mes_numero} para "{reserva.propiedad.titulo}" ha sido rechazado: {motivo}'
    )
    notificacion_service.crear_notificacion(
        reserva.id_usuario,
        titulo,
        mensaje,
        "pago",
        id_referencia=reserva.id,
    )
    eventos.publicar(
        "pagos",
        "UPDATE",
        {"id_reserva": reserva.id, "id_pago": pago.id, "mes": pago.mes_numero, "estado_pago": nuevo_estado},
        destinatarios=[reserva.id_usuario, id_usuario_actual],
    )

    return pago_to_dict(pago)
