from marshmallow import fields, validates, ValidationError, validate
from app.extensions import ma


class RegistroSchema(ma.Schema):
    nombre_completo = fields.String(required=True, validate=validate.Length(min=1))
    email = fields.Email(required=True)
    contrasena = fields.String(required=True, load_only=True)
    numero_telefono = fields.String(required=False, allow_none=True)
    rol = fields.String(
        required=False,
        load_default="estudiante",
        validate=validate.OneOf(["estudiante", "propietario"]),
    )

    @validates("contrasena")
    def validate_password(self, value, **kwargs):
        if len(value) < 6:
            raise ValidationError("La contraseña debe tener al menos 6 caracteres.")


class LoginSchema(ma.Schema):
    email = fields.Email(required=True)
    contrasena = fields.String(required=True, load_only=True)


class PerfilUpdateSchema(ma.Schema):
    nombre_completo = fields.String(required=False, validate=validate.Length(min=1, max=200))
    numero_telefono = fields.String(required=False, allow_none=True, validate=validate.Length(max=20))
