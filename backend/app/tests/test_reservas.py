import logging
from datetime import date, datetime
from types import SimpleNamespace

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Query

from app.models.notificacion import Notificacion
from app.models.pago import Pago
from app.models.propiedad import Propiedad
from app.models.reserva import Reserva
from app.services import reserva_service


def _hoy() -> date:
	return datetime.utcnow().date()


def _crear(client, auth_header, usuario, propiedad, duracion=3, llegada=None):
	return client.post(
		"/api/reservas",
		json={
			"id_propiedad": propiedad.id,
			"fecha_llegada": (llegada or _hoy()).isoformat(),
			"duracion_meses": duracion,
		},
		headers=auth_header(usuario.id),
	)


def test_crear_reserva_pendiente(client, make_user, make_propiedad, auth_header, db_session):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	prop = make_propiedad(dueno.id, precio_mensual=2500)

	resp = _crear(client, auth_header, estudiante, prop, duracion=4, llegada=date(2024, 1, 31))
	assert resp.status_code == 201
	data = resp.get_json()["data"]
	assert data["estado_reserva"] == "pendiente"
	assert data["costo_total"] == 10000.0
	assert data["monto_mensual"] == 2500.0
	assert data["fecha_salida"] == "2024-05-31"
	assert data["propiedad"]["id"] == prop.id

	# El dueño recibe aviso de la nueva solicitud
	n = Notificacion.query.filter_by(id_usuario_destinatario=dueno.id, id_referencia=data["id"]).first()
	assert n is not None
	assert n.tipo == "reserva"

	# La propiedad no cambia hasta que el dueño acepte
	db_session.expire_all()
	assert Propiedad.query.get(prop.id).estado == "disponible"


def test_duracion_invalida_no_escribe(client, make_user, make_propiedad, auth_header):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	prop = make_propiedad(dueno.id)

	for duracion in (0, -2):
		resp = _crear(client, auth_header, estudiante, prop, duracion=duracion)
		assert resp.status_code == 400

	assert Reserva.query.filter_by(id_propiedad=prop.id).count() == 0


def test_solicitud_pendiente_duplicada(client, make_user, make_propiedad, auth_header):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	prop = make_propiedad(dueno.id)

	r1 = _crear(client, auth_header, estudiante, prop)
	assert r1.status_code == 201

	r2 = _crear(client, auth_header, estudiante, prop, duracion=6)
	assert r2.status_code == 409
	body = r2.get_json()
	assert body["payload"]["code"] == "DUPLICATE_PENDING_REQUEST"
	assert body["payload"]["id_reserva"] == r1.get_json()["data"]["id"]
	assert Reserva.query.filter_by(id_propiedad=prop.id).count() == 1


def test_no_puede_reservar_su_propiedad(client, make_user, make_propiedad, auth_header):
	dueno = make_user(rol="propietario")
	prop = make_propiedad(dueno.id)

	resp = _crear(client, auth_header, dueno, prop)
	assert resp.status_code == 403


def test_aceptar_marca_propiedad_reservada(client, make_user, make_propiedad, auth_header, db_session):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	prop = make_propiedad(dueno.id)

	id_reserva = _crear(client, auth_header, estudiante, prop).get_json()["data"]["id"]

	resp = client.patch(
		f"/api/reservas/{id_reserva}/estado",
		json={"estado": "aceptada"},
		headers=auth_header(dueno.id),
	)
	assert resp.status_code == 200
	assert resp.get_json()["data"]["estado_reserva"] == "aceptada"

	db_session.expire_all()
	assert Reserva.query.get(id_reserva).estado_reserva == "aceptada"
	assert Propiedad.query.get(prop.id).estado == "reservado"

	# Y el estudiante recibe aviso
	assert (
		Notificacion.query.filter_by(id_usuario_destinatario=estudiante.id, id_referencia=id_reserva).count() == 1
	)


def test_solo_el_dueno_decide(client, make_user, make_propiedad, auth_header):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	prop = make_propiedad(dueno.id)

	id_reserva = _crear(client, auth_header, estudiante, prop).get_json()["data"]["id"]

	resp = client.patch(
		f"/api/reservas/{id_reserva}/estado",
		json={"estado": "aceptada"},
		headers=auth_header(estudiante.id),
	)
	assert resp.status_code == 403


def test_estado_invalido(client, make_user, make_propiedad, auth_header):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	prop = make_propiedad(dueno.id)

	id_reserva = _crear(client, auth_header, estudiante, prop).get_json()["data"]["id"]

	resp = client.patch(
		f"/api/reservas/{id_reserva}/estado",
		json={"estado": "cancelada"},
		headers=auth_header(dueno.id),
	)
	assert resp.status_code == 400


def test_no_acepta_dos_reservas(client, make_user, make_propiedad, auth_header, db_session):
	dueno = make_user(rol="propietario")
	est1 = make_user()
	est2 = make_user()
	prop = make_propiedad(dueno.id)

	id1 = _crear(client, auth_header, est1, prop).get_json()["data"]["id"]
	id2 = _crear(client, auth_header, est2, prop).get_json()["data"]["id"]

	ok = client.patch(f"/api/reservas/{id1}/estado", json={"estado": "aceptada"}, headers=auth_header(dueno.id))
	assert ok.status_code == 200

	# Aceptar otra sobre la misma propiedad
	dup = client.patch(f"/api/reservas/{id2}/estado", json={"estado": "aceptada"}, headers=auth_header(dueno.id))
	assert dup.status_code == 409
	assert dup.get_json()["payload"]["code"] == "INVALID_TRANSITION"

	# Re-aceptar la misma tampoco aplica: ya no está pendiente
	again = client.patch(f"/api/reservas/{id1}/estado", json={"estado": "rechazada"}, headers=auth_header(dueno.id))
	assert again.status_code == 409

	# Rechazar la segunda no libera la propiedad ocupada por la primera
	rej = client.patch(f"/api/reservas/{id2}/estado", json={"estado": "rechazada"}, headers=auth_header(dueno.id))
	assert rej.status_code == 200

	db_session.expire_all()
	assert Propiedad.query.get(prop.id).estado == "reservado"


def test_no_reserva_propiedad_ocupada(client, make_user, make_propiedad, auth_header):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	prop = make_propiedad(dueno.id, estado="reservado")

	resp = _crear(client, auth_header, estudiante, prop)
	assert resp.status_code == 409
	assert resp.get_json()["payload"]["code"] == "PROPERTY_RESERVED"


def test_cancelar_reserva(client, make_user, make_propiedad, auth_header, db_session):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	prop = make_propiedad(dueno.id)

	id_reserva = _crear(client, auth_header, estudiante, prop).get_json()["data"]["id"]

	# El dueño no cancela; rechaza
	forbidden = client.post(f"/api/reservas/{id_reserva}/cancelar", headers=auth_header(dueno.id))
	assert forbidden.status_code == 403

	resp = client.post(f"/api/reservas/{id_reserva}/cancelar", headers=auth_header(estudiante.id))
	assert resp.status_code == 200
	assert resp.get_json()["data"]["estado_reserva"] == "cancelada"

	db_session.expire_all()
	assert Propiedad.query.get(prop.id).estado == "disponible"

	# Ya es terminal
	again = client.post(f"/api/reservas/{id_reserva}/cancelar", headers=auth_header(estudiante.id))
	assert again.status_code == 409

	# Tras cancelar puede volver a solicitar
	nueva = _crear(client, auth_header, estudiante, prop)
	assert nueva.status_code == 201


def test_permiso_ver_reserva_ajena(client, make_user, make_propiedad, make_reserva, auth_header):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	ajeno = make_user()
	prop = make_propiedad(dueno.id)
	reserva = make_reserva(estudiante.id, prop)

	assert client.get(f"/api/reservas/{reserva.id}", headers=auth_header(estudiante.id)).status_code == 200
	assert client.get(f"/api/reservas/{reserva.id}", headers=auth_header(dueno.id)).status_code == 200
	assert client.get(f"/api/reservas/{reserva.id}", headers=auth_header(ajeno.id)).status_code == 403


def test_listados(client, make_user, make_propiedad, make_reserva, auth_header):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	prop1 = make_propiedad(dueno.id, titulo="Uno")
	prop2 = make_propiedad(dueno.id, titulo="Dos")
	r1 = make_reserva(estudiante.id, prop1)
	r2 = make_reserva(estudiante.id, prop2, estado="rechazada")

	mias = client.get("/api/reservas/mias", headers=auth_header(estudiante.id)).get_json()["data"]["items"]
	assert {r["id"] for r in mias} == {r1.id, r2.id}

	todas = client.get("/api/reservas/propietario", headers=auth_header(dueno.id)).get_json()["data"]["items"]
	assert {r["id"] for r in todas} == {r1.id, r2.id}

	una = client.get(
		f"/api/reservas/propietario?id_propiedad={prop2.id}",
		headers=auth_header(dueno.id),
	).get_json()["data"]["items"]
	assert [r["id"] for r in una] == [r2.id]

	# Filtrar por una propiedad ajena
	resp = client.get(f"/api/reservas/propietario?id_propiedad={prop1.id}", headers=auth_header(estudiante.id))
	assert resp.status_code == 403


def test_limpieza_terminales_propietario(client, make_user, make_propiedad, make_reserva, make_pago, auth_header):
	dueno = make_user(rol="propietario")
	est1 = make_user()
	est2 = make_user()
	prop1 = make_propiedad(dueno.id, titulo="A")
	prop2 = make_propiedad(dueno.id, titulo="B")

	rech1 = make_reserva(est1.id, prop1, estado="rechazada")
	rech2 = make_reserva(est2.id, prop2, estado="rechazada")
	aceptada = make_reserva(est2.id, prop1, estado="aceptada")
	make_pago(rech1, 1, estado="rechazado", motivo_rechazo="ilegible")
	pago_aceptada = make_pago(aceptada, 1, estado="verificado")
	ids_rech = (rech1.id, rech2.id)
	id_aceptada = aceptada.id

	resp = client.delete("/api/reservas/terminales", headers=auth_header(dueno.id))
	assert resp.status_code == 200
	data = resp.get_json()["data"]
	assert data["count"] == 2
	assert data["pagos_eliminados"] == 1

	assert Reserva.query.filter(Reserva.id.in_(ids_rech)).count() == 0
	assert Pago.query.filter(Pago.id_reserva.in_(ids_rech)).count() == 0
	assert Reserva.query.get(id_aceptada) is not None
	assert Pago.query.filter_by(id=pago_aceptada.id).count() == 1


def test_limpieza_terminales_estudiante(client, make_user, make_propiedad, make_reserva, auth_header):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	otro = make_user()
	prop = make_propiedad(dueno.id)

	mia = make_reserva(estudiante.id, prop, estado="cancelada")
	ajena = make_reserva(otro.id, prop, estado="cancelada")
	pendiente = make_reserva(estudiante.id, prop, estado="pendiente")
	ids = (mia.id, ajena.id, pendiente.id)

	resp = client.delete("/api/reservas/terminales", headers=auth_header(estudiante.id))
	assert resp.status_code == 200
	assert resp.get_json()["data"]["count"] == 1

	restantes = {r.id for r in Reserva.query.filter(Reserva.id.in_(ids)).all()}
	assert restantes == {ids[1], ids[2]}


class _ConsultaQueFalla:
	def filter(self, *args, **kwargs):
		return self

	def update(self, *args, **kwargs):
		raise OperationalError("UPDATE propiedades", {}, Exception("database is locked"))


def test_fallo_al_sincronizar_propiedad_no_revierte_la_decision(
	client, make_user, make_propiedad, make_reserva, auth_header, db_session, monkeypatch, caplog
):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	prop = make_propiedad(dueno.id)
	reserva = make_reserva(estudiante.id, prop)
	id_reserva, id_prop = reserva.id, prop.id

	monkeypatch.setattr(
		reserva_service,
		"Propiedad",
		SimpleNamespace(
			query=_ConsultaQueFalla(),
			id=Propiedad.id,
			estado=Propiedad.estado,
			updated_at=Propiedad.updated_at,
		),
	)
	caplog.set_level(logging.WARNING)

	resp = client.patch(
		f"/api/reservas/{id_reserva}/estado",
		json={"estado": "aceptada"},
		headers=auth_header(dueno.id),
	)
	assert resp.status_code == 200
	assert resp.get_json()["data"]["estado_reserva"] == "aceptada"

	db_session.expire_all()
	assert Reserva.query.get(id_reserva).estado_reserva == "aceptada"
	assert Propiedad.query.get(id_prop).estado == "disponible"
	assert "sync propiedad fallo" in caplog.text


def test_crear_reserva_bloquea_la_propiedad(client, make_user, make_propiedad, auth_header, monkeypatch):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	prop = make_propiedad(dueno.id)

	bloqueos = []
	original = Query.with_for_update

	def _registrar(self, *args, **kwargs):
		bloqueos.append(self.column_descriptions[0]["entity"])
		return original(self, *args, **kwargs)

	monkeypatch.setattr(Query, "with_for_update", _registrar)

	assert _crear(client, auth_header, estudiante, prop).status_code == 201
	assert Propiedad in bloqueos

	# Con la fila bloqueada, la segunda solicitud ve la primera
	assert _crear(client, auth_header, estudiante, prop).status_code == 409
	assert Reserva.query.filter_by(id_propiedad=prop.id, estado_reserva="pendiente").count() == 1
