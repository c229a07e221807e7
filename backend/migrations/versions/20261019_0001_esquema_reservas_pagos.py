"""esquema reservas y pagos mensuales

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = inspect(bind)
    tables = set(insp.get_table_names())

    if "usuarios" not in tables:
        op.create_table(
            "usuarios",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("nombre_completo", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("hash_contrasena", sa.String(length=255), nullable=False),
            sa.Column("numero_telefono", sa.String(length=20), nullable=True),
            sa.Column("url_foto_perfil", sa.String(length=500), nullable=True),
            sa.Column("rol", sa.String(length=20), server_default="estudiante", nullable=False),
            sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
            sa.UniqueConstraint("email", name="uq_usuarios_email"),
        )

    if "propiedades" not in tables:
        op.create_table(
            "propiedades",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("id_propietario", sa.Integer(), nullable=False),
            sa.Column("titulo", sa.String(length=150), nullable=False),
            sa.Column("descripcion", sa.Text(), nullable=False),
            sa.Column("direccion", sa.String(length=255), nullable=False),
            sa.Column("ciudad", sa.String(length=100), nullable=False),
            sa.Column("estado_ubicacion", sa.String(length=100), nullable=True),
            sa.Column("tipo_propiedad", sa.String(length=40), nullable=True),
            sa.Column("capacidad", sa.Integer(), server_default=sa.text("1"), nullable=False),
            sa.Column("precio_mensual", sa.Numeric(10, 2), nullable=False),
            sa.Column("servicios", sa.JSON(), nullable=True),
            sa.Column("galeria_fotos", sa.JSON(), nullable=True),
            sa.Column("estado", sa.String(length=20), server_default="disponible", nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["id_propietario"], ["usuarios.id"], ondelete="RESTRICT"),
        )
        op.create_index("ix_propiedades_id_propietario", "propiedades", ["id_propietario"], unique=False)
        op.create_index("ix_propiedades_estado", "propiedades", ["estado"], unique=False)

    if "reservas" not in tables:
        op.create_table(
            "reservas",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("id_usuario", sa.Integer(), nullable=False),
            sa.Column("id_propiedad", sa.Integer(), nullable=False),
            sa.Column("fecha_llegada", sa.Date(), nullable=False),
            sa.Column("fecha_salida", sa.Date(), nullable=False),
            sa.Column("duracion_meses", sa.Integer(), server_default=sa.text("1"), nullable=False),
            sa.Column("costo_total", sa.Numeric(10, 2), nullable=False),
            sa.Column("estado_reserva", sa.String(length=20), server_default="pendiente", nullable=False),
            sa.Column("estado_pago", sa.Boolean(), server_default=sa.text("0"), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["id_usuario"], ["usuarios.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["id_propiedad"], ["propiedades.id"], ondelete="RESTRICT"),
        )
        op.create_index("ix_reservas_id_usuario", "reservas", ["id_usuario"], unique=False)
        op.create_index("ix_reservas_id_propiedad", "reservas", ["id_propiedad"], unique=False)
        op.create_index("ix_reservas_estado_reserva", "reservas", ["estado_reserva"], unique=False)

    if "pagos" not in tables:
        op.create_table(
            "pagos",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("id_reserva", sa.Integer(), nullable=False),
            sa.Column("mes_numero", sa.Integer(), nullable=False),
            sa.Column("metodo_pago", sa.String(length=50), nullable=False),
            sa.Column("monto_pagado", sa.Numeric(10, 2), nullable=False),
            sa.Column("url_comprobante_pago", sa.String(length=500), nullable=True),
            sa.Column("estado_pago", sa.String(length=30), server_default="pendiente", nullable=False),
            sa.Column("verificado_por", sa.Integer(), nullable=True),
            sa.Column("fecha_verificacion", sa.DateTime(), nullable=True),
            sa.Column("motivo_rechazo", sa.String(length=500), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["id_reserva"], ["reservas.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["verificado_por"], ["usuarios.id"], ondelete="RESTRICT"),
            sa.UniqueConstraint("id_reserva", "mes_numero", name="uq_pagos_reserva_mes"),
        )
        op.create_index("ix_pagos_id_reserva", "pagos", ["id_reserva"], unique=False)

    if "notificaciones" not in tables:
        op.create_table(
            "notificaciones",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("id_usuario_destinatario", sa.Integer(), nullable=False),
            sa.Column("titulo", sa.String(length=120), nullable=False),
            sa.Column("mensaje", sa.String(length=300), nullable=False),
            sa.Column("tipo", sa.String(length=30), nullable=False),
            sa.Column("id_referencia", sa.Integer(), nullable=True),
            sa.Column("tipo_referencia", sa.String(length=30), nullable=True),
            sa.Column("estado_lectura", sa.Boolean(), server_default=sa.text("0"), nullable=False),
            sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
            sa.ForeignKeyConstraint(["id_usuario_destinatario"], ["usuarios.id"], ondelete="RESTRICT"),
        )
        op.create_index(
            "ix_notificaciones_id_usuario_destinatario",
            "notificaciones",
            ["id_usuario_destinatario"],
            unique=False,
        )
        op.create_index("ix_notificaciones_estado_lectura", "notificaciones", ["estado_lectura"], unique=False)
        op.create_index("ix_notificaciones_created_at", "notificaciones", ["created_at"], unique=False)


def downgrade():
    bind = op.get_bind()
    insp = inspect(bind)
    tables = set(insp.get_table_names())

    # Orden inverso por las FK
    for tabla in ("notificaciones", "pagos", "reservas", "propiedades", "usuarios"):
        if tabla in tables:
            op.drop_table(tabla)
