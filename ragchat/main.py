"""Main Quart application for the document chat service."""
import logging
from typing import Optional

import structlog
from pydantic import ValidationError
from quart import Blueprint, Quart, Response, current_app, jsonify, request

from ragchat import config
from ragchat.errors import ExtractionError
from ragchat.extract import extract_text
from ragchat.models import ChatRequest, ClearMode, ClearRequest, DeleteRequest, UploadForm
from ragchat.rag.documents import Document, StorageMode
from ragchat.services import RagServices
from ragchat.stream_relay import StreamRelay

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

api = Blueprint("api", __name__)


def _services() -> RagServices:
    return current_app.extensions["ragchat"]


def _validation_details(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
        for err in error.errors()
    ]


@api.route("/chat", methods=["POST"])
async def chat():
    """Stream a chat completion, augmented with retrieved document context.

    Expects JSON body:
    {
        "messages": [{"role": "user", "content": "..."}, ...]
    }

    Returns a chunked text/plain stream of generated text, optionally ending
    with "[Sources: ...]". Upstream failures are returned with the upstream
    status code and body.
    """
    services = _services()

    data = await request.get_json(silent=True)
    try:
        chat_request = ChatRequest.model_validate(data or {})
    except ValidationError as e:
        logger.error("invalid_chat_request", errors=_validation_details(e))
        return jsonify({"error": "Invalid chat request", "details": _validation_details(e)}), 400

    history = [message.to_wire() for message in chat_request.messages]
    question = chat_request.latest_question() or ""

    logger.info(
        "chat_request_received",
        message_count=len(history),
        question_length=len(question),
    )

    try:
        prompt = await services.orchestrator.augment(question, history)
        upstream = await services.llm_client.open_chat_stream(prompt.messages)
    except Exception as e:
        logger.error("chat_endpoint_error", error=str(e), error_type=type(e).__name__)
        return jsonify({"error": "Internal Server Error"}), 500

    if not upstream.is_success:
        try:
            await upstream.aread()
            error_text = upstream.text
        finally:
            await upstream.aclose()

        logger.error(
            "upstream_provider_error",
            status_code=upstream.status_code,
            body_preview=error_text[:200],
        )
        return Response(
            error_text,
            status=upstream.status_code,
            content_type="text/plain; charset=utf-8",
        )

    relay = StreamRelay(sources=prompt.sources)
    response = Response(
        relay.relay(upstream.aiter_bytes(), release=upstream.aclose),
        status=200,
        content_type="text/plain; charset=utf-8",
    )
    # The stream lasts as long as the upstream generation does
    response.timeout = None
    return response


@api.route("/upload", methods=["POST"])
async def upload():
    """Extract, embed and store an uploaded document.

    Expects multipart form fields:
        file: the document (PDF or plain text)
        mode: "temporary" (default) or "permanent"

    Returns JSON:
    {
        "success": true,
        "id": "document-id",
        "message": "Uploaded to temporary storage"
    }
    """
    services = _services()

    files = await request.files
    form = await request.form

    upload_file = files.get("file")
    if upload_file is None or not upload_file.filename:
        return jsonify({"error": "No file provided"}), 400

    try:
        upload_form = UploadForm.model_validate(
            {"mode": form.get("mode") or StorageMode.EPHEMERAL.value}
        )
    except ValidationError:
        return jsonify({"error": "Invalid mode (expected 'temporary' or 'permanent')"}), 400

    mode = upload_form.mode
    filename = upload_file.filename
    content = upload_file.read()

    logger.info(
        "upload_received",
        filename=filename,
        content_type=upload_file.mimetype,
        size=len(content),
        mode=mode.value,
    )

    try:
        text = extract_text(content, filename, upload_file.mimetype)
    except ExtractionError as e:
        logger.error("text_extraction_failed", filename=filename, error=str(e))
        return jsonify({"error": str(e)}), 500

    if not text or not text.strip():
        return jsonify({"error": "File is empty or text could not be extracted"}), 400

    try:
        embedding = await services.embedder.embed(text)
        doc = Document.create(text=text, embedding=embedding, filename=filename, mode=mode)
        await services.store.add(doc, mode)
    except Exception as e:
        logger.error("upload_failed", filename=filename, error=str(e), error_type=type(e).__name__)
        return jsonify({"error": str(e) or "Upload failed"}), 500

    logger.info("document_stored", document_id=doc.id, mode=mode.value)

    return jsonify({
        "success": True,
        "id": doc.id,
        "message": f"Uploaded to {mode.value} storage",
    })


@api.route("/docs/list", methods=["GET"])
async def list_documents():
    """List documents in both partitions.

    Returns JSON:
    {
        "temporary": [{"id", "filename", "mode", "uploadedAt"}, ...],
        "permanent": [...]
    }
    """
    try:
        listing = await _services().store.list()
    except Exception as e:
        logger.error("docs_list_error", error=str(e), error_type=type(e).__name__)
        return jsonify({"error": "Failed to list documents"}), 500

    logger.info(
        "docs_listed",
        temporary_count=len(listing.ephemeral),
        permanent_count=len(listing.durable),
    )
    return jsonify(listing.to_dict())


@api.route("/docs/delete", methods=["DELETE"])
async def delete_document():
    """Delete one document.

    Expects JSON body: {"id": "document-id", "mode": "temporary" | "permanent"}
    """
    data = await request.get_json(silent=True)
    try:
        delete_request = DeleteRequest.model_validate(data or {})
    except ValidationError as e:
        logger.error("invalid_delete_request", errors=_validation_details(e))
        return jsonify({"error": "Missing id or mode"}), 400

    try:
        await _services().store.delete(delete_request.id, delete_request.mode)
    except Exception as e:
        logger.error("docs_delete_error", error=str(e), document_id=delete_request.id)
        return jsonify({"error": "Delete failed"}), 500

    return jsonify({"success": True})


@api.route("/docs/clear", methods=["DELETE"])
async def clear_documents():
    """Clear a partition, or both.

    Expects JSON body: {"mode": "temporary" | "permanent" | "all"}
    """
    data = await request.get_json(silent=True)
    try:
        clear_request = ClearRequest.model_validate(data or {})
    except ValidationError:
        return jsonify({"error": "Invalid mode (expected 'temporary', 'permanent' or 'all')"}), 400

    store = _services().store
    try:
        if clear_request.mode == ClearMode.ALL:
            await store.clear_all()
        else:
            await store.clear(StorageMode(clear_request.mode.value))
    except Exception as e:
        logger.error("docs_clear_error", error=str(e), mode=clear_request.mode.value)
        return jsonify({"error": "Clear failed", "details": str(e)}), 500

    logger.info("docs_cleared", mode=clear_request.mode.value)
    return jsonify({"success": True})


@api.route("/health/ready")
async def health_ready():
    """Report whether uploads and retrieval can be served.

    Returns 200 when the Ollama embedding service answers and lists the
    embedder's model, 503 otherwise with the reason under "error".
    """
    services = _services()
    checks = {
        "status": "healthy",
        "embedding_service": False,
        "embedding_model": False,
    }

    try:
        available = await services.llm_client.list_models()
    except Exception as e:
        logger.error("readiness_check_failed", error=str(e), error_type=type(e).__name__)
        checks["status"] = "unhealthy"
        checks["error"] = str(e)
        return jsonify(checks), 503

    checks["embedding_service"] = True
    if services.embedder.model in available:
        checks["embedding_model"] = True
        return jsonify(checks), 200

    checks["status"] = "unhealthy"
    checks["error"] = f"Missing embedding model: {services.embedder.model}"
    return jsonify(checks), 503


@api.route("/health/live")
async def health_live():
    return jsonify({"status": "alive"}), 200


@api.app_errorhandler(404)
async def not_found(error):
    """JSON body for unknown routes, matching the other endpoints' error shape."""
    return jsonify({"error": "Not found"}), 404


@api.app_errorhandler(500)
async def internal_error(error):
    logger.error("unhandled_request_error", error=str(error))
    return jsonify({"error": "Internal server error"}), 500


def create_app(services: Optional[RagServices] = None) -> Quart:
    """Build the Quart application around a set of services.

    Args:
        services: Service container (defaults built from config if not provided)
    """
    app = Quart(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_BYTES

    services = services or RagServices.create()
    app.extensions["ragchat"] = services
    app.register_blueprint(api)

    @app.before_serving
    async def startup():
        await services.startup()

    @app.after_serving
    async def shutdown():
        await services.shutdown()

    return app


app = create_app()


if __name__ == "__main__":
    # For development - use hypercorn ragchat.main:app in production
    app.run(host="0.0.0.0", port=5000, debug=True)
