from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from models.schemas.common import ApiKeySchema
from utils.decorators import token_required

bp = Blueprint("apikey", __name__)

api_key_schema = ApiKeySchema()


@bp.post("/set_apikey")
@token_required()
def set_apikey():
    """
    Store the caller's own generative-AI key
    ---
    tags:
      - API key
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            apiKey: { type: string }
    responses:
      200:
        description: Stored
      400:
        description: API key is not provided
    """
    payload = request.get_json(silent=True) or {}
    data = api_key_schema.load(payload)
    current_app.extensions["api_keys"].set_key(g.current_user, data["apiKey"])
    return jsonify({"message": "API key has been set successfully"}), 200


@bp.delete("/delete_apikey")
@token_required()
def delete_apikey():
    """
    Forget the caller's key (idempotent)
    ---
    tags:
      - API key
    security:
      - Bearer: []
    responses:
      200:
        description: Cleared
    """
    current_app.extensions["api_keys"].clear_key(g.current_user)
    return jsonify({"message": "API key has been reset successfully"}), 200
