import os

from app import create_app
from app.config import DevConfig, ProdConfig


def _es_produccion() -> bool:
    if os.getenv("APP_ENV", "").strip().lower() in ("prod", "production"):
        return True
    # Railway no define APP_ENV; sus variables de despliegue bastan
    return any(
        os.getenv(k)
        for k in (
            "RAILWAY_PROJECT_ID",
            "RAILWAY_SERVICE_ID",
            "RAILWAY_ENVIRONMENT_ID",
            "RAILWAY_ENVIRONMENT",
        )
    )


config = ProdConfig if _es_produccion() else DevConfig
app = create_app(config)

if __name__ == "__main__":
    app.run()
