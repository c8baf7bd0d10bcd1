from datetime import datetime, timezone
from typing import Optional

import click
from flask import Blueprint, Flask, current_app, jsonify, request
from loguru import logger
from sqlalchemy import text
from werkzeug.exceptions import HTTPException

from opsdesk.config import Settings
from opsdesk.db import init_db, make_engine, make_session_factory
from opsdesk.errors import ValidationError, error_response, handle_errors
from opsdesk.importer import import_directory
from opsdesk.log import configure_logging
from opsdesk.serializers import (
    analytics_action_dict,
    analytics_message_dict,
    conversation_dict,
    conversation_summary,
    message_dict,
)
from opsdesk.services import analytics
from opsdesk.services.conversations import (
    ConversationQuery,
    action_center_queue,
    dashboard_stats,
    get_conversation,
    search_conversations,
)
from opsdesk.services.messages import NewMessage, record_message
from opsdesk.utils.dates import DateRange

api = Blueprint("api", __name__)


def open_session():
    return current_app.extensions["opsdesk"]["sessions"]()


def _json_body(required: bool = False) -> Optional[dict]:
    body = request.get_json(silent=True)
    if body is None and (required or request.get_data()):
        raise ValidationError("Request body must be valid JSON")
    return body


def _date_range() -> DateRange:
    return DateRange.parse(request.args.get("startDate"), request.args.get("endDate"))


@api.get("/")
@handle_errors("Failed to load dashboard stats")
def index():
    db = open_session()
    try:
        return jsonify({"success": True, "data": dashboard_stats(db)})
    finally:
        db.close()


@api.get("/health")
def health():
    db = open_session()
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.warning(f"Health check could not reach the database: {e}")
        db_status = "disconnected"
    finally:
        db.close()

    return jsonify({
        "status": "healthy" if db_status == "connected" else "degraded",
        "database": db_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


@api.post("/conversations")
@handle_errors("Failed to fetch conversations")
def query_conversations():
    query = ConversationQuery.from_payload(_json_body())

    db = open_session()
    try:
        page = search_conversations(db, query)
        return jsonify({
            "success": True,
            "data": [conversation_dict(c) for c in page.items],
            "pagination": page.pagination(),
            "filters": query.filters,
            "orderBy": query.order_dict(),
        })
    finally:
        db.close()


@api.get("/conversations/<conversation_id>")
@handle_errors("Failed to fetch conversation")
def conversation_detail(conversation_id: str):
    db = open_session()
    try:
        conv = get_conversation(db, conversation_id)
        return jsonify({"success": True, "data": conversation_dict(conv)})
    finally:
        db.close()


@api.get("/action-center")
@handle_errors("Failed to fetch action center queue")
def action_center():
    db = open_session()
    try:
        queue = action_center_queue(db)
        return jsonify({
            "success": True,
            "totalConversations": len(queue),
            "data": [conversation_dict(c) for c in queue],
        })
    finally:
        db.close()


@api.post("/messages")
@handle_errors("Failed to record message")
def create_message():
    # validate before touching the store
    new = NewMessage.from_payload(_json_body(required=True))

    db = open_session()
    try:
        msg, conv = record_message(db, new)
        return jsonify({
            "success": True,
            "data": {"message": message_dict(msg), "conversation": conversation_summary(conv)},
        }), 201
    finally:
        db.close()


@api.get("/messages")
@handle_errors("Failed to retrieve messages")
def list_messages():
    date_range = _date_range()

    db = open_session()
    try:
        messages = analytics.list_messages(db, date_range)
        return jsonify({
            "success": True,
            "dateRange": date_range.as_dict(),
            "totalMessages": len(messages),
            "messages": [analytics_message_dict(m) for m in messages],
        })
    finally:
        db.close()


@api.get("/actions")
@handle_errors("Failed to retrieve actions")
def list_actions():
    date_range = _date_range()

    db = open_session()
    try:
        actions = analytics.list_actions(db, date_range)
        return jsonify({
            "success": True,
            "dateRange": date_range.as_dict(),
            "totalActions": len(actions),
            "actions": [analytics_action_dict(a) for a in actions],
        })
    finally:
        db.close()


@api.get("/analytics/messages")
@handle_errors("Failed to summarize messages")
def message_buckets():
    date_range = _date_range()

    db = open_session()
    try:
        summary = analytics.summarize_messages(db, date_range)
        return jsonify({"success": True, "dateRange": date_range.as_dict(), **summary})
    finally:
        db.close()


@api.get("/analytics/actions")
@handle_errors("Failed to summarize actions")
def action_buckets():
    date_range = _date_range()

    db = open_session()
    try:
        summary = analytics.summarize_actions(db, date_range)
        return jsonify({"success": True, "dateRange": date_range.as_dict(), **summary})
    finally:
        db.close()


@api.post("/init")
@handle_errors("Failed to import conversation data")
def reimport():
    db = open_session()
    try:
        summary = import_directory(db, current_app.config["OPSDESK_DATA_ROOT"])
        return jsonify({
            "success": True,
            "message": "Database cleared and conversation data imported successfully",
            "data": summary.as_dict(),
        })
    finally:
        db.close()


def _register_cli(app: Flask) -> None:
    @app.cli.command("init-db")
    def init_db_command():
        """Create the conversation tables."""
        init_db(app.extensions["opsdesk"]["engine"])
        click.echo("Tables created")

    @app.cli.command("import-data")
    @click.option("--data-root", default=None, help="Directory holding calls/ and texts/.")
    def import_data_command(data_root):
        """Wipe the store and import every event file under the data root."""
        root = data_root or app.config["OPSDESK_DATA_ROOT"]
        db = app.extensions["opsdesk"]["sessions"]()
        try:
            summary = import_directory(db, root)
        finally:
            db.close()
        click.echo(
            f"Imported {summary.conversation_count} conversations, "
            f"{summary.message_count} messages, {summary.action_count} actions"
        )


def create_app(settings: Optional[Settings] = None) -> Flask:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.config["OPSDESK_DATA_ROOT"] = settings.data_root
    app.json.sort_keys = False

    engine = make_engine(settings.database_url)
    app.extensions["opsdesk"] = {
        "engine": engine,
        "sessions": make_session_factory(engine),
    }

    app.register_blueprint(api)

    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        return error_response(e.description or e.name, e.code or 500)

    _register_cli(app)
    return app


if __name__ == "__main__":
    app = create_app()
    # Create tables (simple dev mode)
    init_db(app.extensions["opsdesk"]["engine"])
    app.run(host="0.0.0.0", port=5000, debug=True)
