from app.services import notificacion_service


def test_listar_y_marcar(client, make_user, auth_header, app):
	usuario = make_user()
	otro = make_user()

	with app.test_request_context():
		n1 = notificacion_service.crear_notificacion(usuario.id, "Reserva aceptada", "Tu reserva fue aceptada.", "reserva")
		notificacion_service.crear_notificacion(usuario.id, "Pago verificado", "Tu pago fue verificado.", "pago")
		id_n1 = n1.id

	resp = client.get("/api/notificaciones", headers=auth_header(usuario.id))
	assert resp.status_code == 200
	data = resp.get_json()["data"]
	assert len(data["items"]) == 2
	assert data["unread_count"] == 2

	# Una notificación ajena no se puede marcar
	ajena = client.post(f"/api/notificaciones/{id_n1}/leer", headers=auth_header(otro.id))
	assert ajena.status_code == 404

	leida = client.post(f"/api/notificaciones/{id_n1}/leer", headers=auth_header(usuario.id))
	assert leida.status_code == 200
	assert leida.get_json()["data"]["estado_lectura"] is True

	data = client.get("/api/notificaciones", headers=auth_header(usuario.id)).get_json()["data"]
	assert data["unread_count"] == 1

	todas = client.post("/api/notificaciones/leer-todas", headers=auth_header(usuario.id))
	assert todas.get_json()["data"]["count"] == 1

	borradas = client.delete("/api/notificaciones", headers=auth_header(usuario.id))
	assert borradas.get_json()["data"]["count"] == 2

	data = client.get("/api/notificaciones", headers=auth_header(usuario.id)).get_json()["data"]
	assert data == {"items": [], "unread_count": 0}


def test_mensaje_vacio_no_crea(app, make_user):
	usuario = make_user()
	with app.test_request_context():
		assert notificacion_service.crear_notificacion(usuario.id, "", "sin título", "reserva") is None
