from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity

from app.schemas.auth_schemas import RegistroSchema, LoginSchema, PerfilUpdateSchema
from app.services import usuario_service, auth_service
from app.utils.responses import success_response
from app.utils.errors import ApiError

bp = Blueprint("auth", __name__)


@bp.get("/ping")
def ping():
    return success_response(message="auth ok")


@bp.post("/register")
def register():
    data = RegistroSchema().load(request.json or {})
    usuario = usuario_service.crear_usuario(data)
    return success_response(
        data=usuario_service.usuario_to_dict(usuario),
        message="Usuario registrado correctamente",
        status_code=201
    )


@bp.post("/login")
def login():
    data = LoginSchema().load(request.json or {})
    result = auth_service.autenticar(
        data["email"],
        data["contrasena"]
    )
    return success_response(data=result, message="Login exitoso")


@bp.get("/me")
@jwt_required()
def me():
    user_id = get_jwt_identity()
    try:
        user_id_int = int(user_id)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    usuario = usuario_service.obtener_usuario_por_id(user_id_int)
    if not usuario:
        raise ApiError("Usuario no encontrado", 404)

    return success_response(
        data=usuario_service.usuario_to_dict(usuario),
        message="Perfil del usuario"
    )


@bp.patch("/me")
@jwt_required()
def actualizar_me():
    """Body JSON: {"nombre_completo", "numero_telefono"} (ambos opcionales)"""
    user_id = get_jwt_identity()
    try:
        user_id_int = int(user_id)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    data = PerfilUpdateSchema().load(request.get_json() or {})
    usuario = usuario_service.actualizar_perfil(user_id_int, data)
    return success_response(
        data=usuario_service.usuario_to_dict(usuario),
        message="Perfil actualizado"
    )


@bp.post("/me/foto")
@jwt_required()
def subir_foto_me():
    """multipart/form-data con la imagen en el campo 'foto'."""
    user_id = get_jwt_identity()
    try:
        user_id_int = int(user_id)
    except (TypeError, ValueError):
        raise ApiError("Token inválido", 401)

    usuario = usuario_service.subir_foto_perfil(user_id_int, request.files.get("foto"))
    return success_response(
        data=usuario_service.usuario_to_dict(usuario),
        message="Foto de perfil actualizada"
    )
