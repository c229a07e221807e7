import os
import uuid

from flask import current_app, request

from app.utils.errors import ApiError, FalloAlmacen


EXTENSIONES_PERMITIDAS = {".jpg", ".jpeg", ".png", ".webp"}

# carpeta pública -> clave de config con la ruta en disco
CARPETAS = {
    "comprobantes": "UPLOADS_COMPROBANTES_DIR",
    "propiedades": "UPLOADS_PROPIEDADES_DIR",
    "perfiles": "UPLOADS_PERFILES_DIR",
}


def _guardar_imagen(carpeta: str, id_dueno: int, archivo, campo: str) -> str:
    """Guarda la imagen y devuelve su URL pública.

    Ruta: <dir de la carpeta>/<id_dueno>/<uuid><ext>
    """

    if archivo is None or not (archivo.filename or "").strip():
        raise ApiError(f"Debes enviar la imagen en el campo '{campo}'.", 400)

    _, ext = os.path.splitext(archivo.filename or "")
    ext = (ext or "").lower()
    if ext not in EXTENSIONES_PERMITIDAS:
        raise ApiError("Formato inválido. Solo se permiten: jpg, jpeg, png, webp.", 400)

    upload_dir = current_app.config.get(CARPETAS[carpeta])
    if not upload_dir:
        raise ApiError("Configuración de uploads no disponible", 500)

    destino = os.path.join(upload_dir, str(int(id_dueno)))
    filename = f"{uuid.uuid4().hex}{ext}"
    try:
        os.makedirs(destino, exist_ok=True)
        archivo.save(os.path.join(destino, filename))
    except OSError as err:
        current_app.logger.error("[%s] no se pudo guardar id=%s: %s", carpeta, id_dueno, err)
        raise FalloAlmacen("No se pudo subir la imagen.")

    base = (request.host_url or "http://127.0.0.1:5000/").rstrip("/")
    return f"{base}/uploads/{carpeta}/{int(id_dueno)}/{filename}"


def guardar_comprobante(id_reserva: int, archivo) -> str:
    return _guardar_imagen("comprobantes", id_reserva, archivo, "comprobante")


def guardar_foto_propiedad(id_propiedad: int, archivo) -> str:
    return _guardar_imagen("propiedades", id_propiedad, archivo, "fotos")


def guardar_foto_perfil(id_usuario: int, archivo) -> str:
    return _guardar_imagen("perfiles", id_usuario, archivo, "foto")


def ruta_local(url: str | None) -> str | None:
    """Ruta en disco de una URL generada aquí; None si no es de este servidor."""

    for carpeta, clave in CARPETAS.items():
        marca = f"/uploads/{carpeta}/"
        if url and marca in url:
            relativa = url.split(marca, 1)[1]
            base = current_app.config.get(clave)
            if not base or ".." in relativa.split("/"):
                return None
            return os.path.join(base, *relativa.split("/"))
    return None


def descartar(url: str | None) -> None:
    """Borra un archivo ya subido cuya fila no llegó a guardarse."""

    ruta = ruta_local(url)
    if not ruta:
        return
    try:
        os.remove(ruta)
    except FileNotFoundError:
        pass
    except OSError as err:
        current_app.logger.warning("[uploads] no se pudo borrar %s: %s", ruta, err)
