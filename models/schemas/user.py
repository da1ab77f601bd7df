from marshmallow import EXCLUDE, Schema, fields, pre_load, validate


def _strip(v):
    return v.strip() if isinstance(v, str) else v


class SignupSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    username = fields.String(
        required=True,
        validate=validate.Length(min=1, max=150, error="Username must be 1-150 characters long."),
        error_messages={"required": "username is required"},
    )
    password = fields.String(
        required=True,
        load_only=True,
        validate=validate.Length(min=1, error="password is required"),
        error_messages={"required": "password is required"},
    )

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "username" in data:
            data["username"] = _strip(data["username"])
        return data


class LoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    username = fields.String(load_default="")
    password = fields.String(load_default="")

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "username" in data:
            data["username"] = _strip(data["username"])
        return data


class UserOutSchema(Schema):
    id = fields.String()
    username = fields.String()
    has_api_key = fields.Method("get_has_api_key")
    created_at = fields.DateTime(allow_none=True)

    def get_has_api_key(self, obj):
        return bool(getattr(obj, "api_key", None))
