from typing import Any

from flask import Blueprint, Flask, current_app, redirect, render_template, request, session, url_for

from src.auth import authentication_filter, get_auth_store, get_principal, get_session_id, htmx
from src.db import close_db_connection, init_db
from src.errors import ConfigurationError, OAuth2Error
from src.oauth import begin_login, oauth
from src.oauth2.client import OAuth2Client
from src.oauth2.types import ClientConfig
from src.security import HardenedHttp

ERROR_MESSAGES = {
    "authorization_failed": "The authorization server did not grant access.",
    "missing_code": "The authorization server did not return a code.",
    "missing_state": "The authorization response was incomplete.",
    "invalid_state": "The login request expired or was tampered with. Please try again.",
    "missing_code_verifier": "The login request expired. Please try again.",
    "token_exchange_failed": "Could not complete login with the authorization server.",
    "dpop_signing_failed": "Could not complete login with the authorization server.",
}

pages = Blueprint("pages", __name__)


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)
    _ = app.config.from_prefixed_env()
    if test_config is not None:
        app.config.update(test_config)

    if not app.config.get("SECRET_KEY"):
        raise ConfigurationError("missing SECRET_KEY, sessions cannot be signed")

    client_config = ClientConfig.from_mapping(app.config)
    http = HardenedHttp(timeout=float(app.config.get("HTTP_TIMEOUT", 20)))
    app.extensions["oauth2_client"] = OAuth2Client.from_config(client_config, http)

    app.register_blueprint(pages)
    app.register_blueprint(oauth)
    htmx.init_app(app)
    init_db(app)

    _ = app.before_request(authentication_filter)
    _ = app.teardown_appcontext(close_db_connection)
    return app


@pages.get("/")
def page_index():
    return redirect(url_for("pages.page_login"), 302)


@pages.get("/login")
def page_login():
    error = request.args.get("error")
    # only known codes are shown, never free text from the query string
    message = ERROR_MESSAGES.get(error or "")
    try:
        authorization_url = begin_login()
    except OAuth2Error as exception:
        current_app.logger.error(f"authorization initiation failed: {exception}")
        authorization_url = None
        message = message or ERROR_MESSAGES["authorization_failed"]
    return render_template(
        "login.html",
        authorization_url=authorization_url,
        error=error if error in ERROR_MESSAGES else None,
        message=message,
    )


@pages.get("/home")
def page_home():
    principal = get_principal()
    return render_template("home.html", principal=principal)


@pages.route("/logout", methods=["GET", "POST"])
def auth_logout():
    session_id = get_session_id(session)
    if session_id is not None:
        get_auth_store().remove(session_id)
    session.clear()
    return redirect(url_for("pages.page_login"), 303)
