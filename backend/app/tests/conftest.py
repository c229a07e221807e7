import uuid
from datetime import date, datetime

import pytest

from sqlalchemy.pool import StaticPool
from flask_jwt_extended import create_access_token

from app import create_app
from app.config import TestConfig as BaseTestConfig
from app.extensions import db, bcrypt

# Importar modelos para que SQLAlchemy registre mappers/tablas
import app.models  # noqa: F401
from app.models.usuario import Usuario
from app.models.propiedad import Propiedad
from app.models.reserva import Reserva
from app.models.pago import Pago
from app.services import eventos
from app.utils.fechas import sumar_meses


class PytestConfig(BaseTestConfig):
	SQLALCHEMY_DATABASE_URI = "sqlite://"
	SQLALCHEMY_ENGINE_OPTIONS = {
		"connect_args": {"check_same_thread": False},
		"poolclass": StaticPool,
	}
	JWT_SECRET_KEY = "test-secret"


@pytest.fixture(scope="session")
def app(tmp_path_factory):
	PytestConfig.UPLOADS_COMPROBANTES_DIR = str(tmp_path_factory.mktemp("comprobantes"))
	PytestConfig.UPLOADS_PROPIEDADES_DIR = str(tmp_path_factory.mktemp("propiedades"))
	PytestConfig.UPLOADS_PERFILES_DIR = str(tmp_path_factory.mktemp("perfiles"))
	app = create_app(PytestConfig)
	with app.app_context():
		db.create_all()
		yield app
		db.session.remove()
		db.drop_all()


@pytest.fixture()
def client(app):
	return app.test_client()


@pytest.fixture()
def db_session(app):
	with app.app_context():
		yield db.session
		db.session.rollback()


@pytest.fixture(autouse=True)
def _limpiar_suscripciones():
	yield
	eventos.cancelar_todas()


@pytest.fixture()
def make_user(db_session):
	def _make_user(
		email: str | None = None,
		rol: str = "estudiante",
		nombre: str = "Test User",
		password: str = "Passw0rd!",
		telefono: str = "5512345678",
	):
		# La BD vive toda la sesión: cada usuario necesita un correo único
		email = email or f"{rol}-{uuid.uuid4().hex[:10]}@test.com"
		u = Usuario(
			nombre_completo=nombre,
			email=email,
			hash_contrasena=bcrypt.generate_password_hash(password).decode("utf-8"),
			numero_telefono=telefono,
			rol=rol,
		)
		db_session.add(u)
		db_session.commit()
		return u

	return _make_user


@pytest.fixture()
def make_token(app):
	def _make_token(user_id: int, rol: str | None = None) -> str:
		with app.app_context():
			return create_access_token(identity=str(user_id), additional_claims={"rol": rol or "estudiante"})

	return _make_token


@pytest.fixture()
def auth_header(make_token):
	def _auth_header(user_id: int, rol: str | None = None) -> dict:
		token = make_token(user_id, rol=rol)
		return {"Authorization": f"Bearer {token}"}

	return _auth_header


@pytest.fixture()
def make_propiedad(db_session):
	def _make_propiedad(
		id_propietario: int,
		titulo: str = "Cuarto cerca de CU",
		precio_mensual: float = 3000,
		ciudad: str = "CDMX",
		servicios: list[str] | None = None,
		estado: str = "disponible",
	):
		p = Propiedad(
			id_propietario=id_propietario,
			titulo=titulo,
			descripcion="Cuarto amueblado",
			direccion="Av. Universidad 3000",
			ciudad=ciudad,
			estado_ubicacion="CDMX",
			tipo_propiedad="cuarto",
			capacidad=1,
			precio_mensual=precio_mensual,
			servicios=servicios if servicios is not None else ["wifi", "agua"],
			galeria_fotos=[],
			estado=estado,
		)
		db_session.add(p)
		db_session.commit()
		return p

	return _make_propiedad


@pytest.fixture()
def make_reserva(db_session):
	"""Inserta una reserva directamente (sin pasar por la API)."""

	def _make_reserva(
		id_usuario: int,
		propiedad: Propiedad,
		estado: str = "pendiente",
		fecha_llegada: date | None = None,
		duracion_meses: int = 3,
	):
		llegada = fecha_llegada or datetime.utcnow().date()
		r = Reserva(
			id_usuario=id_usuario,
			id_propiedad=propiedad.id,
			fecha_llegada=llegada,
			fecha_salida=sumar_meses(llegada, duracion_meses),
			duracion_meses=duracion_meses,
			costo_total=float(propiedad.precio_mensual) * duracion_meses,
			estado_reserva=estado,
			estado_pago=False,
		)
		db_session.add(r)
		db_session.commit()
		return r

	return _make_reserva


@pytest.fixture()
def make_pago(db_session):
	def _make_pago(reserva: Reserva, mes_numero: int, estado: str = "pendiente", motivo_rechazo: str | None = None):
		p = Pago(
			id_reserva=reserva.id,
			mes_numero=mes_numero,
			metodo_pago="transferencia",
			monto_pagado=reserva.monto_mensual,
			url_comprobante_pago="http://localhost/uploads/comprobantes/x.png",
			estado_pago=estado,
			motivo_rechazo=motivo_rechazo,
		)
		db_session.add(p)
		db_session.commit()
		return p

	return _make_pago
