from quart import Quart, jsonify
from dotenv import load_dotenv
import logging
import os

from gatehouse.settings import settings

load_dotenv()


def create_app(services=None):
    from .services.container import SERVICES_KEY, AppLifecycle, AppServices

    if services is None:
        services = AppServices.create()

    lifecycle = AppLifecycle(services)

    app = Quart(__name__)
    app.config["DEBUG"] = bool(settings.get("DEBUG", False))
    app.extensions[SERVICES_KEY] = services
    app.extensions["gatehouse_lifecycle"] = lifecycle

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", str(settings.LOG_LEVEL)),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    from .routes.auth import auth_bp

    app.register_blueprint(auth_bp)

    @app.before_serving
    async def _start_lifecycle() -> None:
        await lifecycle.start()

    @app.after_serving
    async def _stop_lifecycle() -> None:
        await lifecycle.stop()

    @app.errorhandler(404)
    async def not_found(e):
        message = getattr(e, "description", "Not found.")
        return jsonify({"error": message}), 404

    @app.errorhandler(Exception)
    async def handle_exception(e):
        app.logger.exception("Unhandled exception: %s", e)
        message = "An unexpected error occurred. Please try again later."
        return jsonify({"error": message}), 500

    app.logger.info("Application initialized")
    return app
