from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity

from app.schemas.reserva_schemas import ReservaCreateSchema, ReservaEstadoSchema
from app.services import reserva_service
from app.utils.responses import success_response
from app.utils.errors import ApiError
from app.utils.security import ROL_PROPIETARIO, require_usuario

bp = Blueprint("reservas", __name__)

reserva_create_schema = ReservaCreateSchema()
reserva_estado_schema = ReservaEstadoSchema()


@bp.get("/ping")
def ping():
    return success_response(message="reservas ok")


@bp.post("")
@jwt_required()
def crear_reserva():
    """
    Solicita una reserva mensual.
    Body JSON:
    {
      "id_propiedad": 1,
      "fecha_llegada": "2025-02-01",
      "duracion_meses": 6
    }
    """
    id_usuario = get_jwt_identity()
    try:
        id_usuario = int(id_usuario)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    json_data = request.get_json() or {}
    data = reserva_create_schema.load(json_data)
    reserva_dict = reserva_service.crear_reserva(data, id_usuario)

    return success_response(
        message="Solicitud de reserva enviada",
        data=reserva_dict,
        status_code=201,
    )


@bp.get("/mias")
@jwt_required()
def listar_mis_reservas():
    id_usuario = get_jwt_identity()
    try:
        id_usuario = int(id_usuario)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    reservas = reserva_service.listar_reservas_usuario(id_usuario)
    return success_response(data={"items": reservas}, message="OK")


@bp.get("/propietario")
@jwt_required()
def listar_reservas_propietario():
    """Reservas sobre mis propiedades. Query param opcional: ?id_propiedad=3"""
    id_usuario = get_jwt_identity()
    try:
        id_usuario = int(id_usuario)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    id_propiedad = request.args.get("id_propiedad")
    if id_propiedad is not None:
        try:
            id_propiedad = int(id_propiedad)
        except (TypeError, ValueError):
            raise ApiError("id_propiedad inválido", 400)

    reservas = reserva_service.listar_reservas_propietario(id_usuario, id_propiedad=id_propiedad)
    return success_response(data={"items": reservas}, message="OK")


@bp.get("/<int:id_reserva>")
@jwt_required()
def obtener_reserva(id_reserva: int):
    id_usuario = get_jwt_identity()
    try:
        id_usuario = int(id_usuario)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    reserva_dict = reserva_service.obtener_reserva(id_reserva, id_usuario)
    return success_response(data=reserva_dict, message="OK")


@bp.patch("/<int:id_reserva>/estado")
@jwt_required()
def actualizar_estado(id_reserva: int):
    """Body JSON: {"estado": "aceptada" | "rechazada"}"""
    id_usuario = get_jwt_identity()
    try:
        id_usuario = int(id_usuario)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    data = reserva_estado_schema.load(request.get_json() or {})
    reserva_dict = reserva_service.actualizar_estado_reserva(id_reserva, data["estado"], id_usuario)

    mensaje = "Reserva aceptada" if data["estado"] == "aceptada" else "Reserva rechazada"
    return success_response(data=reserva_dict, message=mensaje)


@bp.post("/<int:id_reserva>/cancelar")
@jwt_required()
def cancelar_reserva(id_reserva: int):
    id_usuario = get_jwt_identity()
    try:
        id_usuario = int(id_usuario)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    reserva_dict = reserva_service.cancelar_reserva(id_reserva, id_usuario)
    return success_response(data=reserva_dict, message="Reserva cancelada")


@bp.delete("/terminales")
@jwt_required()
def limpiar_terminales():
    """Borra mis reservas canceladas/rechazadas (y sus pagos)."""
    id_usuario = get_jwt_identity()
    try:
        id_usuario = int(id_usuario)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    usuario = require_usuario(id_usuario)
    es_propietario = (usuario.rol or "").strip().lower() == ROL_PROPIETARIO

    data = reserva_service.limpiar_reservas_terminales(id_usuario, es_propietario)
    return success_response(data=data, message=f"{data['count']} reservas eliminadas")
