from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity

from app.schemas.propiedad_schemas import (
    PropiedadBusquedaSchema,
    PropiedadCreateSchema,
    PropiedadUpdateSchema,
)
from app.services import propiedad_service
from app.utils.responses import success_response
from app.utils.errors import ApiError

bp = Blueprint("propiedades", __name__)

propiedad_busqueda_schema = PropiedadBusquedaSchema()
propiedad_create_schema = PropiedadCreateSchema()
propiedad_update_schema = PropiedadUpdateSchema()


def _id_usuario_actual() -> int:
    id_usuario = get_jwt_identity()
    try:
        return int(id_usuario)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)


@bp.get("")
def buscar_propiedades():
    """
    Búsqueda pública de propiedades disponibles.
    Query params: ubicacion, ciudad, estado_ubicacion, tipo, precio_min,
    precio_max, capacidad, servicios (repetible o separado por comas), orden.
    """
    args = request.args.to_dict()
    servicios = []
    for valor in request.args.getlist("servicios"):
        servicios.extend(s for s in valor.split(",") if s.strip())
    args["servicios"] = servicios

    filtros = propiedad_busqueda_schema.load(args)
    items = propiedad_service.buscar_propiedades(filtros)
    return success_response(data={"items": items, "total": len(items)}, message="OK")


@bp.get("/mias")
@jwt_required()
def listar_mis_propiedades():
    id_usuario = _id_usuario_actual()
    items = propiedad_service.listar_propiedades_usuario(id_usuario)
    return success_response(data={"items": items}, message="OK")


@bp.get("/<int:id_propiedad>")
def obtener_propiedad(id_propiedad: int):
    propiedad = propiedad_service.obtener_propiedad(id_propiedad)
    if not propiedad:
        raise ApiError("Propiedad no encontrada", 404)
    return success_response(data=propiedad, message="OK")


@bp.post("")
@jwt_required()
def crear_propiedad():
    id_usuario = _id_usuario_actual()
    data = propiedad_create_schema.load(request.get_json() or {})
    propiedad = propiedad_service.crear_propiedad(data, id_usuario)
    return success_response(
        data=propiedad,
        message="Propiedad publicada correctamente",
        status_code=201,
    )


@bp.patch("/<int:id_propiedad>")
@jwt_required()
def actualizar_propiedad(id_propiedad: int):
    id_usuario = _id_usuario_actual()
    data = propiedad_update_schema.load(request.get_json() or {}, partial=True)
    propiedad = propiedad_service.actualizar_propiedad(id_propiedad, id_usuario, data)
    return success_response(data=propiedad, message="Propiedad actualizada")


@bp.delete("/<int:id_propiedad>")
@jwt_required()
def eliminar_propiedad(id_propiedad: int):
    id_usuario = _id_usuario_actual()
    propiedad_service.eliminar_propiedad(id_propiedad, id_usuario)
    return success_response(message="Propiedad eliminada")


@bp.post("/<int:id_propiedad>/fotos")
@jwt_required()
def subir_fotos_propiedad(id_propiedad: int):
    """multipart/form-data con una o más imágenes en el campo 'fotos'."""
    id_usuario = _id_usuario_actual()
    archivos = request.files.getlist("fotos")
    propiedad = propiedad_service.subir_fotos_propiedad(id_propiedad, id_usuario, archivos)
    return success_response(data=propiedad, message="Fotos agregadas", status_code=201)
