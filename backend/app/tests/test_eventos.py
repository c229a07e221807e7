import pytest

from app.services import eventos


def test_suscripcion_filtra_por_usuario(client, make_user, make_propiedad, auth_header):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	ajeno = make_user()
	prop = make_propiedad(dueno.id)

	recibidos_dueno = []
	recibidos_ajeno = []
	eventos.suscribir("reservas", recibidos_dueno.append, id_usuario=dueno.id)
	eventos.suscribir("reservas", recibidos_ajeno.append, id_usuario=ajeno.id)

	resp = client.post(
		"/api/reservas",
		json={"id_propiedad": prop.id, "fecha_llegada": "2025-02-01", "duracion_meses": 2},
		headers=auth_header(estudiante.id),
	)
	assert resp.status_code == 201

	assert len(recibidos_dueno) == 1
	evento = recibidos_dueno[0]
	assert evento["tema"] == "reservas"
	assert evento["tipo"] == "INSERT"
	assert evento["datos"]["id_reserva"] == resp.get_json()["data"]["id"]
	assert recibidos_ajeno == []


def test_notificaciones_se_publican(client, make_user, make_propiedad, auth_header):
	dueno = make_user(rol="propietario")
	estudiante = make_user()
	prop = make_propiedad(dueno.id)

	recibidos = []
	eventos.suscribir("notificaciones", recibidos.append, id_usuario=dueno.id)

	client.post(
		"/api/reservas",
		json={"id_propiedad": prop.id, "fecha_llegada": "2025-02-01", "duracion_meses": 2},
		headers=auth_header(estudiante.id),
	)

	assert len(recibidos) == 1
	assert recibidos[0]["datos"]["tipo"] == "reserva"


def test_cancelar_es_idempotente(app):
	recibidos = []
	sub = eventos.suscribir("pagos", recibidos.append)
	assert sub.activa

	with app.test_request_context():
		assert eventos.publicar("pagos", "INSERT", {"id_pago": 1}) == 1

	sub.cancelar()
	sub.cancelar()
	assert not sub.activa

	with app.test_request_context():
		assert eventos.publicar("pagos", "INSERT", {"id_pago": 2}) == 0
	assert len(recibidos) == 1


def test_callback_roto_no_rompe_publicacion(app):
	def _falla(evento):
		raise RuntimeError("boom")

	recibidos = []
	eventos.suscribir("pagos", _falla)
	eventos.suscribir("pagos", recibidos.append)

	with app.test_request_context():
		eventos.publicar("pagos", "UPDATE", {"id_pago": 3}, destinatarios=[5])

	assert len(recibidos) == 1
	assert recibidos[0]["destinatarios"] == [5]


def test_tema_desconocido():
	with pytest.raises(ValueError):
		eventos.suscribir("chat", lambda e: None)
