from marshmallow import EXCLUDE, Schema, fields, validate


class ExecuteSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    code = fields.String(
        required=True,
        validate=validate.Length(min=1, error="Code not found"),
        error_messages={"required": "Code not found"},
    )


class ChatSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    message = fields.String(
        required=True,
        validate=validate.Length(min=1, error="No message provided"),
        error_messages={"required": "No message provided"},
    )
    code = fields.String(load_default="", allow_none=True)
    lessonId = fields.Raw(load_default=None, allow_none=True)
    context = fields.String(load_default=None, allow_none=True)


class ApiKeySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    apiKey = fields.String(
        required=True,
        validate=validate.Length(min=1, error="API key is not provided"),
        error_messages={"required": "API key is not provided"},
    )
