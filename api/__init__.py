from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, validate_config
from .errors import register_error_handlers
from .logging_config import configure_logging
from models import storage
from models.user_store import UserStore
from utils.api_keys import ApiKeyManager
from utils.gemini import GeminiClient
from utils.sandbox import ExecutionSandbox

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Python Tutor API",
        "version": "1.0.0",
        "description": "Accounts, tutor chat and sandboxed execution of student Python code.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    `overrides` is applied on top of the selected config class (tests use it
    to point the sandbox at a temporary directory).
    """
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)
    validate_config(app.config)
    configure_logging(app.config["LOG_LEVEL"])

    origins = [o.strip() for o in app.config["FRONTEND_URL"].split(",") if o.strip()]
    CORS(
        app,
        resources={r"/*": {"origins": origins}},
        supports_credentials=True,
        methods=["GET", "POST", "DELETE", "PUT"],
        allow_headers=["Content-Type", "Authorization", "token"],
    )

    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    register_error_handlers(app)

    storage.configure(app.config["DATABASE_URL"])
    user_store = UserStore(storage)

    sandbox = ExecutionSandbox(
        app.config["SANDBOX_DIR"],
        python=app.config["SANDBOX_PYTHON"],
        timeout=app.config["SANDBOX_TIMEOUT_SECONDS"],
        cpu_seconds=app.config["SANDBOX_CPU_SECONDS"],
        memory_bytes=app.config["SANDBOX_MEMORY_BYTES"],
        max_output_chars=app.config["SANDBOX_MAX_OUTPUT_CHARS"],
        max_concurrency=app.config["SANDBOX_MAX_CONCURRENCY"],
    )
    # a sandbox directory that cannot be created is fatal at startup
    sandbox.ensure_workdir()

    app.extensions["user_store"] = user_store
    app.extensions["api_keys"] = ApiKeyManager(
        user_store,
        default_key=app.config["GENERATIVE_API_KEY"],
        allow_anonymous_fallback=app.config["ALLOW_DEFAULT_API_KEY"],
    )
    app.extensions["sandbox"] = sandbox
    app.extensions["generative_client"] = GeminiClient(app.config["GEMINI_MODEL_NAME"])

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .execute import bp as execute_bp
    from .chat import bp as chat_bp
    from .apikey import bp as apikey_bp

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(execute_bp, url_prefix="/api")
    app.register_blueprint(chat_bp, url_prefix="/api")
    app.register_blueprint(apikey_bp, url_prefix="/api")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to the Python Tutor API",
            "docs": "/apidocs/",
            "health": "/api/health",
        }, 200

    return app
