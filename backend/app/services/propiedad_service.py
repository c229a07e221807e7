from typing import Dict, Any, List, Optional

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.extensions import db
from app.models import Propiedad, Reserva
from app.services import almacenamiento_service
from app.utils.errors import ApiError
from app.utils.security import require_propietario


ORDENES = {
    "newest": (Propiedad.created_at.desc(), Propiedad.id.desc()),
    "oldest": (Propiedad.created_at.asc(), Propiedad.id.asc()),
    "price_asc": (Propiedad.precio_mensual.asc(), Propiedad.id.asc()),
    "price_desc": (Propiedad.precio_mensual.desc(), Propiedad.id.desc()),
}

CAMPOS_EDITABLES = (
    "titulo",
    "descripcion",
    "direccion",
    "ciudad",
    "estado_ubicacion",
    "tipo_propiedad",
    "capacidad",
    "precio_mensual",
    "servicios",
    "galeria_fotos",
)


def _propiedad_to_dict(propiedad: Propiedad, incluir_propietario: bool = True) -> Dict[str, Any]:
    propietario_data = None
    if incluir_propietario and propiedad.propietario:
        propietario_data = {
            "id": propiedad.propietario.id,
            "nombre_completo": propiedad.propietario.nombre_completo,
            "numero_telefono": propiedad.propietario.numero_telefono,
            "url_foto_perfil": propiedad.propietario.url_foto_perfil,
        }

    return {
        "id": propiedad.id,
        "id_propietario": propiedad.id_propietario,
        "titulo": propiedad.titulo,
        "descripcion": propiedad.descripcion,
        "direccion": propiedad.direccion,
        "ciudad": propiedad.ciudad,
        "estado_ubicacion": propiedad.estado_ubicacion,
        "tipo_propiedad": propiedad.tipo_propiedad,
        "capacidad": propiedad.capacidad,
        "precio_mensual": float(propiedad.precio_mensual),
        "servicios": list(propiedad.servicios or []),
        "galeria_fotos": list(propiedad.galeria_fotos or []),
        "estado": propiedad.estado,
        "created_at": propiedad.created_at.isoformat() if propiedad.created_at else None,
        "updated_at": propiedad.updated_at.isoformat() if propiedad.updated_at else None,
        "propietario": propietario_data,
    }


def crear_propiedad(data: Dict[str, Any], id_propietario: int) -> Dict[str, Any]:
    require_propietario(id_propietario)

    propiedad = Propiedad(
        id_propietario=id_propietario,
        titulo=data["titulo"].strip(),
        descripcion=data["descripcion"].strip(),
        direccion=data["direccion"].strip(),
        ciudad=data["ciudad"].strip(),
        estado_ubicacion=data.get("estado_ubicacion"),
        tipo_propiedad=data.get("tipo_propiedad"),
        capacidad=data.get("capacidad") or 1,
        precio_mensual=data["precio_mensual"],
        servicios=data.get("servicios") or [],
        galeria_fotos=data.get("galeria_fotos") or [],
        estado="disponible",
    )

    db.session.add(propiedad)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ApiError("Error al crear la propiedad", 500)

    return _propiedad_to_dict(propiedad)


def obtener_propiedad(id_propiedad: int) -> Optional[Dict[str, Any]]:
    propiedad = Propiedad.query.get(id_propiedad)
    if not propiedad:
        return None
    return _propiedad_to_dict(propiedad)


def listar_propiedades_usuario(id_propietario: int) -> List[Dict[str, Any]]:
    propiedades = (
        Propiedad.query.filter_by(id_propietario=id_propietario)
        .order_by(Propiedad.created_at.desc(), Propiedad.id.desc())
        .all()
    )
    return [_propiedad_to_dict(p, incluir_propietario=False) for p in propiedades]


def actualizar_propiedad(id_propiedad: int, id_propietario: int, data: Dict[str, Any]) -> Dict[str, Any]:
    propiedad = Propiedad.query.get(id_propiedad)
    if not propiedad:
        raise ApiError("Propiedad no encontrada", 404)

    if propiedad.id_propietario != id_propietario:
        raise ApiError("No autorizado", 403)

    for campo in CAMPOS_EDITABLES:
        if campo not in data:
            continue
        valor = data[campo]
        if isinstance(valor, str):
            valor = valor.strip()
        setattr(propiedad, campo, valor)

    db.session.commit()
    return _propiedad_to_dict(propiedad)


def subir_fotos_propiedad(id_propiedad: int, id_propietario: int, archivos) -> Dict[str, Any]:
    """Agrega las imágenes al final de galeria_fotos."""

    propiedad = Propiedad.query.get(id_propiedad)
    if not propiedad:
        raise ApiError("Propiedad no encontrada", 404)

    if propiedad.id_propietario != id_propietario:
        raise ApiError("No autorizado", 403)

    archivos = [a for a in (archivos or []) if a and (a.filename or "").strip()]
    if not archivos:
        raise ApiError("Debes enviar al menos un archivo en el campo 'fotos'.", 400)

    actuales = list(propiedad.galeria_fotos or [])
    maximo = int(current_app.config.get("MAX_FOTOS_PROPIEDAD", 10))
    if len(actuales) + len(archivos) > maximo:
        raise ApiError(
            f"La propiedad admite como máximo {maximo} fotos.",
            400,
            payload={"code": "TOO_MANY_PHOTOS", "actuales": len(actuales), "maximo": maximo},
        )

    nuevas: List[str] = []
    try:
        for archivo in archivos:
            nuevas.append(almacenamiento_service.guardar_foto_propiedad(propiedad.id, archivo))
        # Lista nueva: la columna JSON no detecta cambios in situ
        propiedad.galeria_fotos = actuales + nuevas
        db.session.commit()
    except (ApiError, SQLAlchemyError):
        db.session.rollback()
        for url in nuevas:
            almacenamiento_service.descartar(url)
        raise

    current_app.logger.info("[propiedades] fotos agregadas propiedad=%s n=%s", propiedad.id, len(nuevas))
    return _propiedad_to_dict(propiedad)


def eliminar_propiedad(id_propiedad: int, id_propietario: int) -> None:
    """No se elimina una propiedad reservada ni una con historial de reservas."""

    propiedad = Propiedad.query.get(id_propiedad)
    if not propiedad:
        raise ApiError("Propiedad no encontrada", 404)

    if propiedad.id_propietario != id_propietario:
        raise ApiError("No autorizado", 403)

    if propiedad.estado == "reservado":
        raise ApiError(
            "No puedes eliminar una propiedad que actualmente tiene una reserva activa.",
            409,
            payload={"code": "PROPERTY_RESERVED"},
        )

    if Reserva.query.filter_by(id_propiedad=propiedad.id).first() is not None:
        raise ApiError(
            "La propiedad tiene reservas registradas. Limpia las reservas terminadas antes de eliminarla.",
            409,
            payload={"code": "PROPERTY_HAS_RESERVATIONS"},
        )

    db.session.delete(propiedad)
    db.session.commit()


def buscar_propiedades(filtros: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Búsqueda de propiedades disponibles.
    Filtros opcionales: ubicacion, ciudad, estado_ubicacion, tipo, precio_min,
    precio_max, capacidad, servicios (todas requeridas), orden.
    """

    query = Propiedad.query.filter(Propiedad.estado == "disponible")

    ubicacion = (filtros.get("ubicacion") or "").strip()
    if ubicacion:
        like = f"%{ubicacion}%"
        query = query.filter(or_(Propiedad.direccion.ilike(like), Propiedad.ciudad.ilike(like)))

    ciudad = (filtros.get("ciudad") or "").strip()
    if ciudad:
        query = query.filter(Propiedad.ciudad.ilike(f"%{ciudad}%"))

    estado_ubicacion = (filtros.get("estado_ubicacion") or "").strip()
    if estado_ubicacion:
        query = query.filter(Propiedad.estado_ubicacion == estado_ubicacion)

    tipo = (filtros.get("tipo") or "").strip()
    if tipo:
        query = query.filter(Propiedad.tipo_propiedad == tipo)

    if filtros.get("precio_min") is not None:
        query = query.filter(Propiedad.precio_mensual >= filtros["precio_min"])
    if filtros.get("precio_max") is not None:
        query = query.filter(Propiedad.precio_mensual <= filtros["precio_max"])
    if filtros.get("capacidad") is not None:
        query = query.filter(Propiedad.capacidad >= filtros["capacidad"])

    orden = filtros.get("orden") or "newest"
    if orden not in ORDENES:
        raise ApiError("Orden inválido. Usa: newest|oldest|price_asc|price_desc", 400)
    propiedades = query.order_by(*ORDENES[orden]).all()

    # servicios es JSON: el "contiene todos" se resuelve aquí para no depender del motor
    servicios = [s.strip().lower() for s in (filtros.get("servicios") or []) if s and s.strip()]
    if servicios:
        propiedades = [
            p
            for p in propiedades
            if set(servicios) <= {str(s).strip().lower() for s in (p.servicios or [])}
        ]

    return [_propiedad_to_dict(p) for p in propiedades]
