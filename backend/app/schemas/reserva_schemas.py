from marshmallow import fields, validate

from app.extensions.ma import ma


class ReservaCreateSchema(ma.Schema):
    """
    Datos para solicitar una reserva mensual.
    La fecha de salida y el costo total se calculan en el servicio
    a partir de la propiedad y la duración.
    """

    id_propiedad = fields.Integer(required=True)
    fecha_llegada = fields.Date(required=True)  # YYYY-MM-DD
    duracion_meses = fields.Integer(
        required=True,
        validate=validate.Range(min=1, error="La duración debe ser de al menos 1 mes."),
    )


class ReservaEstadoSchema(ma.Schema):
    estado = fields.String(
        required=True,
        validate=validate.OneOf(["aceptada", "rechazada"]),
    )
