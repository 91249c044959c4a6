"""
Recipe listing endpoints. The listing is read from the Supabase mirror when it has data,
otherwise from recipes.json in the content store.
"""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends

from oksnap.core.errors import ConfigurationError, OkSnapError, ValidationError
from oksnap.dependencies.services import find_content_publisher, get_content_publisher, get_recipe_index
from oksnap.schemas.recipe import RecipesStoreRequest
from oksnap.services.content_publisher import ContentPublisher
from oksnap.services.deployment import promote_deployment_to_production
from oksnap.services.recipe_index import RecipeIndex
from oksnap.services.recipe_sync import sync_recipes

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_recipe_index(recipe_index: Optional[RecipeIndex]) -> RecipeIndex:
    if recipe_index is None:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
    return recipe_index


@router.get("/recipes-json")
def recipes_json(
    recipe_index: Optional[RecipeIndex] = Depends(get_recipe_index),
    publisher: Optional[ContentPublisher] = Depends(find_content_publisher),
):
    """Never fails: the blog list page renders an empty state instead."""
    if recipe_index is not None:
        try:
            recipes = recipe_index.list_recipes()
        except OkSnapError as e:
            logger.info("[recipes-json] Supabase fetch failed, falling back to recipes.json: %s", e.message)
        else:
            if recipes:
                return [r.to_payload() for r in recipes]

    if publisher is not None:
        try:
            return [e.to_payload() for e in publisher.list_index_entries()]
        except OkSnapError as e:
            logger.warning("[recipes-json] Could not read recipes.json: %s", e.message)
    return []


@router.get("/recipes-store")
def list_stored_recipes(recipe_index: Optional[RecipeIndex] = Depends(get_recipe_index)):
    return [r.to_payload() for r in _require_recipe_index(recipe_index).list_recipes()]


@router.post("/recipes-store")
def store_recipes(
    payload: RecipesStoreRequest,
    recipe_index: Optional[RecipeIndex] = Depends(get_recipe_index),
):
    index = _require_recipe_index(recipe_index)
    if payload.recipes is None:
        raise ValidationError("recipes must be an array")
    count = index.store_recipes(payload.recipes)
    return {
        "success": True,
        "message": f"Successfully stored {len(payload.recipes)} recipes",
        "count": count,
    }


@router.api_route("/sync-recipes", methods=["GET", "POST"])
def sync_recipes_route(
    background_tasks: BackgroundTasks,
    publisher: Optional[ContentPublisher] = Depends(get_content_publisher),
    recipe_index: Optional[RecipeIndex] = Depends(get_recipe_index),
):
    """GET for the scheduled job, POST for manual runs. The Supabase mirror is optional here."""
    if publisher is None:
        raise ConfigurationError("GITHUB_TOKEN and GITHUB_REPO must be set in environment variables")
    result = sync_recipes(publisher, recipe_index)
    if result.get("commitSha"):
        background_tasks.add_task(promote_deployment_to_production, result["commitSha"], publisher.store.branch)
    return result
