from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from models.schemas.common import ExecuteSchema

bp = Blueprint("execute", __name__)

execute_schema = ExecuteSchema()


@bp.post("/execute")
def execute():
    """
    Run a Python snippet and return what it printed
    Script errors come back as `output` with a 200; only failures to start
    the run are 500s.
    ---
    tags:
      - Execution
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            code: { type: string }
    responses:
      200:
        description: Standard output, or the interpreter's error text
      400:
        description: Code not found
      500:
        description: Failed to execute code
    """
    payload = request.get_json(silent=True) or {}
    data = execute_schema.load(payload)
    output = current_app.extensions["sandbox"].run(data["code"])
    return jsonify({"output": output}), 200
