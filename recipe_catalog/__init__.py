from typing import Any, Dict, Optional

from flask import Flask, current_app, jsonify, request
from flask.typing import ResponseReturnValue

from .config import CatalogSettings, build_repository
from .errors import BusinessRuleError, NotFoundError, ValidationError
from .logs import configure_logging
from .mapper import payload_to_input
from .models import Recipe
from .presentation import to_view_model, to_view_models
from .service import RecipeApplicationService
from .storage import RecipeRepository


def create_app(
    repository: Optional[RecipeRepository] = None,
    settings: Optional[CatalogSettings] = None,
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    repository:
        Optional recipe repository. When ``None`` the repository selected by
        ``settings`` (or by :meth:`CatalogSettings.from_env`) is built.
    settings:
        Optional settings; read from the environment when omitted.
    """

    settings = settings if settings is not None else CatalogSettings.from_env()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.config.setdefault("MAX_CONTENT_LENGTH", 1024 * 1024)

    if repository is None:
        repository = build_repository(settings)
    app.config["RECIPE_SERVICE"] = RecipeApplicationService(repository)

    @app.get("/recipes")
    def list_recipes() -> ResponseReturnValue:
        service = _service()
        recipes = service.search_recipes(request.args.get("q", ""))

        category = request.args.get("category", "")
        if category.strip():
            in_category = {recipe.id for recipe in service.filter_by_category(category)}
            recipes = [recipe for recipe in recipes if recipe.id in in_category]

        difficulty = request.args.get("difficulty", "")
        if difficulty.strip():
            at_level = {recipe.id for recipe in service.filter_by_difficulty(difficulty)}
            recipes = [recipe for recipe in recipes if recipe.id in at_level]

        return jsonify(to_view_models(recipes))

    @app.get("/recipes/<recipe_id>")
    def get_recipe(recipe_id: str) -> ResponseReturnValue:
        recipe = _service().get_recipe(recipe_id)
        if recipe is None:
            return _error("Recipe not found", 404)
        return jsonify(to_view_model(recipe))

    @app.post("/recipes")
    def create_recipe() -> ResponseReturnValue:
        payload = _json_payload()
        if payload is None:
            return _error("Request body must be a JSON object", 400)

        recipe = _service().create_recipe(payload_to_input(payload))
        return _recipe_response(recipe, 201)

    @app.route("/recipes/<recipe_id>", methods=["PATCH", "POST"])
    def update_recipe(recipe_id: str) -> ResponseReturnValue:
        payload = _json_payload()
        if payload is None:
            return _error("Request body must be a JSON object", 400)

        recipe = _service().update_recipe(recipe_id, payload_to_input(payload))
        return _recipe_response(recipe, 200)

    @app.delete("/recipes/<recipe_id>")
    @app.post("/recipes/<recipe_id>/delete")
    def delete_recipe(recipe_id: str) -> ResponseReturnValue:
        if not _service().delete_recipe(recipe_id):
            return _error("Recipe not found", 404)
        return "", 204

    @app.get("/categories")
    def list_categories() -> ResponseReturnValue:
        return jsonify(_service().get_categories())

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc: NotFoundError) -> ResponseReturnValue:
        return _error(str(exc), 404)

    @app.errorhandler(BusinessRuleError)
    @app.errorhandler(ValidationError)
    def handle_rejected(exc: Exception) -> ResponseReturnValue:
        return _error(str(exc), 400)

    return app


def _service() -> RecipeApplicationService:
    return current_app.config["RECIPE_SERVICE"]


def _json_payload() -> Optional[Dict[str, Any]]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


def _recipe_response(recipe: Recipe, status: int) -> ResponseReturnValue:
    return jsonify(to_view_model(recipe)), status


def _error(message: str, status: int) -> ResponseReturnValue:
    return jsonify({"error": message}), status


__all__ = ["create_app", "Recipe", "RecipeApplicationService"]
