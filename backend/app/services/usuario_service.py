from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.extensions import db, bcrypt
from app.models.usuario import Usuario
from app.services import almacenamiento_service
from app.utils.errors import ApiError


def obtener_usuario_por_id(user_id: int) -> Optional[Usuario]:
    return Usuario.query.get(user_id)


def crear_usuario(data: dict) -> Usuario:
    email = data["email"].lower().strip()

    if Usuario.query.filter_by(email=email).first():
        raise ApiError("El correo ya está registrado", 400)

    hash_contrasena = bcrypt.generate_password_hash(
        data["contrasena"]
    ).decode("utf-8")

    usuario = Usuario(
        nombre_completo=data["nombre_completo"].strip(),
        email=email,
        hash_contrasena=hash_contrasena,
        numero_telefono=data.get("numero_telefono"),
        rol=data.get("rol") or "estudiante",
    )

    db.session.add(usuario)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ApiError("Error al crear usuario", 500)

    return usuario


def usuario_to_dict(usuario: Usuario) -> dict:
    return {
        "id": usuario.id,
        "nombre_completo": usuario.nombre_completo,
        "email": usuario.email,
        "numero_telefono": usuario.numero_telefono,
        "url_foto_perfil": usuario.url_foto_perfil,
        "rol": usuario.rol,
        "created_at": usuario.created_at.isoformat() if usuario.created_at else None,
    }


CAMPOS_PERFIL = ("nombre_completo", "numero_telefono")


def _require(id_usuario: int) -> Usuario:
    usuario = obtener_usuario_por_id(id_usuario)
    if not usuario:
        raise ApiError("Usuario no encontrado", 404)
    return usuario


def actualizar_perfil(id_usuario: int, data: dict) -> Usuario:
    usuario = _require(id_usuario)

    for campo in CAMPOS_PERFIL:
        if campo not in data:
            continue
        valor = data[campo]
        if isinstance(valor, str):
            valor = valor.strip() or None
        if campo == "nombre_completo" and not valor:
            raise ApiError("El nombre no puede quedar vacío.", 400)
        setattr(usuario, campo, valor)

    db.session.commit()
    return usuario


def subir_foto_perfil(id_usuario: int, archivo) -> Usuario:
    """Reemplaza la foto de perfil; la anterior se borra si es de este servidor."""

    usuario = _require(id_usuario)
    anterior = usuario.url_foto_perfil

    url = almacenamiento_service.guardar_foto_perfil(usuario.id, archivo)
    usuario.url_foto_perfil = url
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        almacenamiento_service.descartar(url)
        raise

    if anterior and anterior != url:
        almacenamiento_service.descartar(anterior)

    current_app.logger.info("[usuarios] foto de perfil usuario=%s", usuario.id)
    return usuario
