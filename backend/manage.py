"""
Archivo de conveniencia para usar el CLI de Flask:
    python manage.py run
    python manage.py shell
    flask db upgrade (con FLASK_APP=wsgi.py) crea usuarios, propiedades,
    reservas, pagos y notificaciones
"""

from flask.cli import main

if __name__ == "__main__":
    main()
