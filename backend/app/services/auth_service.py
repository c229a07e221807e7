from datetime import timedelta
from flask_jwt_extended import create_access_token, create_refresh_token

from app.extensions import bcrypt
from app.models.usuario import Usuario
from app.services.usuario_service import usuario_to_dict
from app.utils.errors import ApiError


def autenticar(email: str, contrasena: str):
    correo = email.lower().strip()
    usuario = Usuario.query.filter_by(email=correo).first()

    if not usuario:
        raise ApiError("Credenciales inválidas", 401)

    try:
        password_ok = bcrypt.check_password_hash(usuario.hash_contrasena or "", contrasena)
    except (ValueError, TypeError):
        # Si el hash en BD está corrupto o en texto plano, no debe reventar en 500.
        raise ApiError("Credenciales inválidas", 401)

    if not password_ok:
        raise ApiError("Credenciales inválidas", 401)

    access_token = create_access_token(
        identity=str(usuario.id),
        additional_claims={"rol": usuario.rol},
        expires_delta=timedelta(hours=3)
    )

    refresh_token = create_refresh_token(identity=str(usuario.id))

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "usuario": usuario_to_dict(usuario),
    }
