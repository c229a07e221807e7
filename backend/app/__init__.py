import pymysql
pymysql.install_as_MySQLdb()
from flask import Flask, abort, send_from_directory
from flask_cors import CORS
from pathlib import Path

from .config import DevConfig
from .extensions import db, migrate, jwt, ma, bcrypt
from .utils.errors import register_error_handlers
from .services.almacenamiento_service import CARPETAS
from .api import (
    auth_routes,
    propiedad_routes,
    reserva_routes,
    pago_routes,
    notificacion_routes,
)


def create_app(config_class=DevConfig) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Carpetas de uploads: comprobantes de pago, fotos de propiedades y de perfil
    for carpeta, clave in CARPETAS.items():
        upload_dir = app.config.get(clave) or (Path(app.root_path).parent / "uploads" / carpeta)
        upload_dir = Path(upload_dir).resolve()
        upload_dir.mkdir(parents=True, exist_ok=True)
        app.config[clave] = str(upload_dir)

    # La app móvil no envía Origin fijo; en producción acotar con CORS_ORIGINS
    CORS(
        app,
        resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
    )

    # Inicializar extensiones
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    ma.init_app(app)
    bcrypt.init_app(app)

    # Registrar blueprints
    app.register_blueprint(auth_routes.bp, url_prefix="/api/auth")
    app.register_blueprint(propiedad_routes.bp, url_prefix="/api/propiedades")
    app.register_blueprint(reserva_routes.bp, url_prefix="/api/reservas")
    app.register_blueprint(pago_routes.bp, url_prefix="/api/pagos")
    app.register_blueprint(notificacion_routes.bp, url_prefix="/api/notificaciones")

    # Manejadores de errores
    register_error_handlers(app)

    @app.get("/api/health")
    def health_check():
        return {"status": "ok", "service": "aloja-backend"}

    @app.get("/uploads/<carpeta>/<path:filename>")
    def servir_upload(carpeta: str, filename: str):
        if carpeta not in CARPETAS:
            abort(404)
        return send_from_directory(app.config[CARPETAS[carpeta]], filename)

    return app
