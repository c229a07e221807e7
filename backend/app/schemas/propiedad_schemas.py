from marshmallow import fields, validate, validates_schema, ValidationError

from app.extensions.ma import ma


class PropiedadCreateSchema(ma.Schema):
    titulo = fields.String(required=True, validate=validate.Length(min=1, max=150))
    descripcion = fields.String(required=True, validate=validate.Length(min=1))
    direccion = fields.String(required=True, validate=validate.Length(min=1, max=255))
    ciudad = fields.String(required=True, validate=validate.Length(min=1, max=100))
    estado_ubicacion = fields.String(required=False, allow_none=True)
    tipo_propiedad = fields.String(required=False, allow_none=True)
    capacidad = fields.Integer(required=False, load_default=1, validate=validate.Range(min=1))
    precio_mensual = fields.Decimal(
        required=True,
        as_string=False,
        validate=validate.Range(min=0, min_inclusive=False),
    )
    servicios = fields.List(fields.String(), required=False, load_default=list)
    galeria_fotos = fields.List(fields.String(), required=False, load_default=list)


class PropiedadUpdateSchema(ma.Schema):
    titulo = fields.String(validate=validate.Length(min=1, max=150))
    descripcion = fields.String(validate=validate.Length(min=1))
    direccion = fields.String(validate=validate.Length(min=1, max=255))
    ciudad = fields.String(validate=validate.Length(min=1, max=100))
    estado_ubicacion = fields.String(allow_none=True)
    tipo_propiedad = fields.String(allow_none=True)
    capacidad = fields.Integer(validate=validate.Range(min=1))
    precio_mensual = fields.Decimal(as_string=False, validate=validate.Range(min=0, min_inclusive=False))
    servicios = fields.List(fields.String())
    galeria_fotos = fields.List(fields.String())


class PropiedadBusquedaSchema(ma.Schema):
    """Filtros de búsqueda (query string)."""

    ubicacion = fields.String(load_default=None)
    ciudad = fields.String(load_default=None)
    estado_ubicacion = fields.String(load_default=None)
    tipo = fields.String(load_default=None)
    precio_min = fields.Float(load_default=None, validate=validate.Range(min=0))
    precio_max = fields.Float(load_default=None, validate=validate.Range(min=0))
    capacidad = fields.Integer(load_default=None, validate=validate.Range(min=1))
    servicios = fields.List(fields.String(), load_default=list)
    orden = fields.String(
        load_default="newest",
        validate=validate.OneOf(["newest", "oldest", "price_asc", "price_desc"]),
    )

    @validates_schema
    def validar_rango_precio(self, data, **kwargs):
        pmin = data.get("precio_min")
        pmax = data.get("precio_max")
        if pmin is not None and pmax is not None and pmin > pmax:
            raise ValidationError(
                "precio_min no puede ser mayor que precio_max",
                field_name="precio_min",
            )
