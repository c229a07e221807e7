# backend/seed_propiedades.py
from app import create_app
from app.extensions import db
from app.models.usuario import Usuario
from app.models.propiedad import Propiedad

app = create_app()

with app.app_context():
    # Escoge un usuario propietario (registrado con rol=propietario)
    propietario = Usuario.query.filter_by(email="propietario@test.com").first()

    if not propietario:
        raise RuntimeError("No encontré usuario 'propietario@test.com' para usar como propietario.")
    if propietario.rol != "propietario":
        raise RuntimeError("El usuario 'propietario@test.com' no tiene rol propietario.")

    p1 = Propiedad(
        id_propietario=propietario.id,
        titulo="Cuarto amueblado cerca de CU",
        descripcion="Cuarto individual con baño compartido, a 10 minutos caminando de Ciudad Universitaria.",
        direccion="Av. Copilco 120",
        ciudad="Coyoacán",
        estado_ubicacion="CDMX",
        tipo_propiedad="cuarto",
        capacidad=1,
        precio_mensual=3500,
        servicios=["wifi", "agua", "luz"],
        galeria_fotos=["https://via.placeholder.com/400x250?text=Cuarto"],
        estado="disponible",
    )

    p2 = Propiedad(
        id_propietario=propietario.id,
        titulo="Departamento para dos estudiantes",
        descripcion="Dos recámaras, cocina equipada y lavadora. Ideal para compartir.",
        direccion="Calle Río Churubusco 45",
        ciudad="Coyoacán",
        estado_ubicacion="CDMX",
        tipo_propiedad="departamento",
        capacidad=2,
        precio_mensual=8200,
        servicios=["wifi", "lavadora", "estacionamiento"],
        galeria_fotos=["https://via.placeholder.com/400x250?text=Departamento"],
        estado="disponible",
    )

    db.session.add_all([p1, p2])
    db.session.commit()

    print("✅ Propiedades de prueba creadas.")
