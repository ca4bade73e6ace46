import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import Flask, g, session
from supabase import create_client

from .auth.routes import auth_bp
from .main.routes import main_bp
from .state import AppState, normalize_workspace_id
from .store import EventStore, LocalEventStore, SupabaseEventStore, WorkspaceRevisions

DEFAULT_TIMEZONE = "America/Sao_Paulo"


def _load_timezone(app: Flask):
    tz_name = app.config["LOCAL_TIMEZONE"]
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        app.logger.warning("Timezone %s unavailable; using the host zone", tz_name)
    return None


def _create_store(app: Flask) -> EventStore:
    supabase_url = os.environ.get("SUPABASE_URL")
    supabase_key = os.environ.get("SUPABASE_SERVICE_KEY")
    if supabase_url and supabase_key:
        client = create_client(supabase_url, supabase_key)
        app.config["SUPABASE"] = client
        app.config["SUPABASE_URL"] = supabase_url
        return SupabaseEventStore(client)

    store_path = os.environ.get("LOCAL_STORE_PATH") or Path(app.instance_path) / "events.db"
    app.logger.info("SUPABASE_URL not set; storing records in %s", store_path)
    return LocalEventStore(store_path)


def create_app():
    app = Flask(
        __name__,
        template_folder="../templates",
        static_folder="../static",
    )
    app.secret_key = os.environ["SECRET_KEY"]
    app.config["LOCAL_TIMEZONE"] = os.environ.get("LOCAL_TIMEZONE") or DEFAULT_TIMEZONE
    app.config["TIMEZONE"] = _load_timezone(app)
    app.config["DEFAULT_WORKSPACE"] = normalize_workspace_id(
        os.environ.get("DEFAULT_WORKSPACE")
    )
    app.config["MANAGER_PASSWORD"] = os.environ.get("MANAGER_PASSWORD")
    app.config["WKHTMLTOPDF_CMD"] = os.environ.get("WKHTMLTOPDF_CMD")
    app.config["EVENT_STORE"] = _create_store(app)
    app.config["WORKSPACE_REVISIONS"] = WorkspaceRevisions(app.config["EVENT_STORE"], app.logger)

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)

    @app.before_request
    def load_app_state():
        g.app_state = AppState.from_session(session)
        if g.app_state is not None:
            app.config["WORKSPACE_REVISIONS"].watch(g.app_state.workspace_id)

    @app.context_processor
    def inject_user_context():
        state = getattr(g, "app_state", None)
        return {
            "app_state": state,
            "user_role": state.role if state else None,
            "workspace_id": state.workspace_id if state else None,
        }

    return app
