from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity

from app.schemas.pago_schemas import PagoRegistroSchema, PagoVerificacionSchema
from app.services import pago_service
from app.utils.responses import success_response
from app.utils.errors import ApiError

bp = Blueprint("pagos", __name__)

pago_registro_schema = PagoRegistroSchema()
pago_verificacion_schema = PagoVerificacionSchema()


@bp.get("/ping")
def ping_pagos():
    return success_response(message="pagos ok")


@bp.get("/reserva/<int:id_reserva>")
@jwt_required()
def calendario_pagos(id_reserva: int):
    """Calendario mensual de la reserva con el estado de cada mes."""
    id_usuario = get_jwt_identity()
    try:
        id_usuario = int(id_usuario)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    data = pago_service.obtener_calendario(id_reserva, id_usuario)
    return success_response(data=data, message="OK")


@bp.post("/reserva/<int:id_reserva>")
@jwt_required()
def registrar_pago(id_reserva: int):
    """
    Registra el pago del siguiente mes pendiente.
    JSON: {"metodo_pago", "monto_pagado", "url_comprobante_pago"}
    o multipart/form-data con los mismos campos y el archivo en 'comprobante'.
    """
    id_usuario = get_jwt_identity()
    try:
        id_usuario = int(id_usuario)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    archivo = request.files.get("comprobante")
    if request.files or request.form:
        payload = request.form.to_dict()
    else:
        payload = request.get_json(silent=True) or {}

    data = pago_registro_schema.load(payload)
    pago = pago_service.registrar_pago(id_reserva, data, id_usuario, archivo=archivo)

    return success_response(
        data=pago,
        message=f"Pago del mes {pago['mes_numero']} registrado. Queda pendiente de verificación.",
        status_code=201,
    )


@bp.post("/<int:id_pago>/verificar")
@jwt_required()
def verificar_pago(id_pago: int):
    """Body JSON: {"aprobado": true} o {"aprobado": false, "motivo_rechazo": "..."}"""
    id_usuario = get_jwt_identity()
    try:
        id_usuario = int(id_usuario)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    data = pago_verificacion_schema.load(request.get_json() or {})
    pago = pago_service.verificar_pago(
        id_pago,
        data["aprobado"],
        data.get("motivo_rechazo"),
        id_usuario,
    )
    mensaje = "Pago verificado" if data["aprobado"] else "Pago rechazado"
    return success_response(data=pago, message=mensaje)
