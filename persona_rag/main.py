"""Main Quart application for the persona RAG backend."""
import logging
from datetime import datetime, timezone
from typing import Optional

import structlog
from quart import Blueprint, Quart, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from persona_rag import config
from persona_rag.errors import RAGError
from persona_rag.schemas import (
    ChatRequest,
    QueryRequest,
    SessionMessageRequest,
    StartSessionRequest,
    UploadRequest,
    parse_request,
)
from persona_rag.service import RAGService, build_service

# Configure structured logging
logging.basicConfig(level=config.LOG_LEVEL, format="%(message)s")
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()

rag_bp = Blueprint("rag", __name__, url_prefix="/rag")
chat_bp = Blueprint("chat", __name__, url_prefix="/chat")
health_bp = Blueprint("health", __name__)


def _service() -> RAGService:
    return current_app.config["RAG_SERVICE"]


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_response(error: str, message: str, status_code: int):
    return jsonify({"error": error, "message": message, "timestamp": _timestamp()}), status_code


@rag_bp.route("/upload", methods=["POST"])
async def upload():
    """Chunk, embed and index a document.

    Expects JSON body:
    {
        "content": "document text",
        "metadata": {...}  // optional
    }

    Returns JSON:
    {
        "success": true,
        "message": "Document uploaded successfully",
        "chunks": 3,
        "metadata": {...}
    }
    """
    body = parse_request(UploadRequest, await request.get_json(silent=True))
    result = await _service().upload_document(body.content, body.metadata)
    return jsonify(result)


@rag_bp.route("/chat", methods=["POST"])
async def chat():
    """Answer a message in persona using retrieved context.

    Expects JSON body:
    {
        "message": "user message text",
        "sessionId": "optional-session-id"  // creates new if not provided
    }

    Returns JSON:
    {
        "response": "assistant response text",
        "sources": [{"content": "...", "metadata": {...}, "score": 0.83}],
        "sessionId": "session-id"
    }
    """
    body = parse_request(ChatRequest, await request.get_json(silent=True))

    logger.info(
        "chat_request_received",
        session_id=body.session_id,
        message_length=len(body.message),
        user_message_preview=body.message[:100],
    )

    result = await _service().chat(body.message, body.session_id)
    return jsonify(result)


@rag_bp.route("/query", methods=["POST"])
async def query():
    """Answer a one-off query without session context."""
    body = parse_request(QueryRequest, await request.get_json(silent=True))
    result = await _service().direct_query(body.query)
    return jsonify(result)


@rag_bp.route("/stats", methods=["GET"])
async def stats():
    return jsonify(await _service().get_stats())


@rag_bp.route("/health", methods=["GET"])
async def rag_health():
    return jsonify(await _service().health_check())


@rag_bp.route("/session/<session_id>", methods=["GET"])
async def rag_session(session_id: str):
    summary = _service().get_session_summary(session_id)
    if summary is None:
        return _error_response("Not found", "Chat session not found", 404)
    return jsonify(summary)


@chat_bp.route("/start", methods=["POST"])
async def start_session():
    """Start a new chat session.

    Expects JSON body:
    {
        "metadata": {...}  // optional
    }
    """
    body = parse_request(StartSessionRequest, await request.get_json(silent=True))
    session = _service().sessions.create(body.metadata)

    return jsonify({
        "sessionId": session.id,
        "message": "Chat session started successfully",
        "session": session.to_dict(),
    })


@chat_bp.route("/message", methods=["POST"])
async def send_message():
    """Append a message to an existing session.

    Expects JSON body:
    {
        "sessionId": "session-id",
        "message": "text",
        "type": "user"  // optional
    }
    """
    body = parse_request(SessionMessageRequest, await request.get_json(silent=True))
    sessions = _service().sessions

    message = sessions.add_message(body.session_id, body.message, body.type)
    if message is None:
        return _error_response("Not found", "Chat session not found", 404)

    return jsonify({
        "message": "Message sent successfully",
        "messageObj": message.to_dict(),
        "session": sessions.get(body.session_id).to_dict(),
    })


@chat_bp.route("/session/<session_id>", methods=["GET"])
async def get_session(session_id: str):
    session = _service().sessions.get(session_id)
    if session is None:
        return _error_response("Not found", "Chat session not found", 404)
    return jsonify(session.to_dict())


@chat_bp.route("/session/<session_id>", methods=["DELETE"])
async def end_session(session_id: str):
    if not _service().sessions.delete(session_id):
        return _error_response("Not found", "Chat session not found", 404)
    return jsonify({"message": "Chat session ended successfully"})


@chat_bp.route("/sessions", methods=["GET"])
async def list_sessions():
    sessions = _service().sessions.list_sessions()
    return jsonify([session.summary() for session in sessions])


@health_bp.route("/health")
async def health():
    """Basic liveness check for the whole server."""
    return jsonify({
        "status": "OK",
        "timestamp": _timestamp(),
        "message": "Backend server is running",
    })


@health_bp.route("/health/live")
async def health_live():
    """Liveness probe - check if app is running."""
    return jsonify({"status": "alive"}), 200


@health_bp.route("/health/ready")
async def health_ready():
    """Readiness probe - check if app can serve requests.

    Checks:
    - The model provider is reachable
    - The vector index can be counted
    """
    ready, checks = await _service().readiness()
    return jsonify(checks), 200 if ready else 503


def _register_error_handlers(app: Quart) -> None:
    @app.errorhandler(RAGError)
    async def handle_rag_error(error: RAGError):
        """Map typed pipeline errors to their status code."""
        log = logger.warning if error.status_code < 500 else logger.error
        log(
            "request_failed",
            path=request.path,
            operation=error.operation,
            error_type=type(error).__name__,
            error=error.message,
            status_code=error.status_code,
        )
        return _error_response(error.title, error.message, error.status_code)

    @app.errorhandler(HTTPException)
    async def handle_http_error(error: HTTPException):
        if error.code == 404:
            return _error_response(
                "Route not found", f"Cannot {request.method} {request.path}", 404
            )
        return _error_response(error.name, error.description or error.name, error.code)

    @app.errorhandler(Exception)
    async def handle_unexpected_error(error: Exception):
        logger.exception("internal_server_error", error=str(error), error_type=type(error).__name__)
        return _error_response("Internal server error", str(error), 500)


def create_app(service: Optional[RAGService] = None) -> Quart:
    """Create the Quart application.

    Args:
        service: Pre-built RAG service (built from config if not provided)
    """
    app = Quart(__name__)
    app.config["RAG_SERVICE"] = service or build_service()

    app.register_blueprint(rag_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(health_bp)
    _register_error_handlers(app)

    return app


app = create_app()


if __name__ == "__main__":
    # For development - use hypercorn persona_rag.main:app in production
    app.run(host="0.0.0.0", port=config.PORT, debug=True)
