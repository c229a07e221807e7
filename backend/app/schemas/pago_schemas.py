from marshmallow import fields, validates_schema, ValidationError, validate

from app.extensions.ma import ma


class PagoRegistroSchema(ma.Schema):
    """El mes a pagar lo decide el servicio; el cliente no lo envía."""

    metodo_pago = fields.String(required=True, validate=validate.Length(min=1, max=50))
    monto_pagado = fields.Float(
        required=True,
        validate=validate.Range(min=0, min_inclusive=False, error="El monto debe ser mayor a 0."),
    )
    url_comprobante_pago = fields.String(required=False, allow_none=True, load_default=None)


class PagoVerificacionSchema(ma.Schema):
    aprobado = fields.Boolean(required=True)
    motivo_rechazo = fields.String(required=False, allow_none=True, load_default=None)

    @validates_schema
    def validar_motivo(self, data, **kwargs):
        if data.get("aprobado") is False and not (data.get("motivo_rechazo") or "").strip():
            raise ValidationError(
                "Debes indicar el motivo del rechazo.",
                field_name="motivo_rechazo",
            )
