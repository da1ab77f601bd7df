from __future__ import annotations

import logging

from flask import Blueprint, current_app, g, jsonify, request

from models.schemas.common import ChatSchema
from utils.decorators import token_required
from utils.exceptions import ChatFailure, TutorError
from utils.prompts import build_tutor_prompt

logger = logging.getLogger(__name__)

bp = Blueprint("chat", __name__)

chat_schema = ChatSchema()


@bp.post("/chat")
@token_required()
def chat():
    """
    Ask the tutor about the current code
    ---
    tags:
      - Chat
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
            message: { type: string }
            code: { type: string }
            lessonId: { type: string }
            context: { type: string, example: playground }
    responses:
      200:
        description: Tutor reply
      400:
        description: No message provided
      401:
        description: Unauthorized
      500:
        description: No API key available, or the model call failed
    """
    payload = request.get_json(silent=True) or {}
    data = chat_schema.load(payload)

    api_key = current_app.extensions["api_keys"].resolve_key(g.current_user)
    prompt = build_tutor_prompt(
        data["message"],
        code=data.get("code"),
        lesson_id=data.get("lessonId"),
        context=data.get("context"),
    )
    try:
        reply = current_app.extensions["generative_client"].generate_text(prompt, api_key)
    except TutorError:
        raise
    except Exception as exc:
        logger.exception("Error getting chat response for %s", g.current_user.username)
        raise ChatFailure() from exc
    return jsonify({"response": reply}), 200
