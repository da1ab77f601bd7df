from flask import Blueprint

bp = Blueprint("health", __name__)


@bp.get("/")
def welcome():
    """
    Welcome message
    ---
    tags:
      - Health
    responses:
      200:
        description: API is reachable
    """
    return {"message": "Welcome to the Python Tutor API!"}, 200


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
    """
    return {"status": "ok", "version": "1.0.0"}, 200
