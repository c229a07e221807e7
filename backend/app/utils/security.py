from app.models.usuario import Usuario
from app.utils.errors import ApiError


ROL_PROPIETARIO = "propietario"
ROL_ESTUDIANTE = "estudiante"


def require_usuario(id_usuario: int) -> Usuario:
	usuario: Usuario | None = Usuario.query.get(id_usuario)
	if not usuario:
		raise ApiError("Usuario no encontrado", 404)
	return usuario


def require_propietario(id_usuario: int) -> Usuario:
	"""Solo cuentas con rol propietario pueden publicar propiedades."""

	usuario = require_usuario(id_usuario)
	if (usuario.rol or "").strip().lower() != ROL_PROPIETARIO:
		raise ApiError(
			"Solo los propietarios pueden realizar esta acción.",
			403,
			payload={"code": "ROLE_REQUIRED", "rol": ROL_PROPIETARIO},
		)
	return usuario
