"""
Blog generation and lookup.
A post is generated at most once per slug: existing posts are returned without spending OpenAI calls.
"""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from starlette.concurrency import run_in_threadpool

from oksnap.core.config import get_public_site_url
from oksnap.core.errors import ConfigurationError, ExternalServiceError, ValidationError
from oksnap.dependencies.services import (
    enforce_rate_limit,
    find_content_publisher,
    get_content_publisher,
    get_openai_client,
    get_recipe_index,
)
from oksnap.models.content import PublishResult
from oksnap.schemas.blog import BlogExistsResponse, GenerateBlogRequest
from oksnap.services.blog_renderer import render_blog_page
from oksnap.services.content_publisher import ContentPublisher
from oksnap.services.deployment import promote_deployment_to_production
from oksnap.services.openai_client import OpenAIClient
from oksnap.services.public_site import blog_image_url, url_exists
from oksnap.services.recipe_index import RecipeIndex
from oksnap.utils.slug import create_slug, validate_slug
from oksnap.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


def _skipped_response(slug: str, url: str) -> dict:
    return {
        "success": True,
        "url": url,
        "blogUrl": url,
        "slug": slug,
        "skipped": True,
        "message": "Blog already exists",
    }


async def _after_index_write(result: PublishResult, background_tasks: BackgroundTasks,
                             publisher: ContentPublisher, recipe_index: Optional[RecipeIndex]) -> None:
    """Mirror the new index entry and promote the commit that carries it."""
    if result.entry is None:
        return
    if recipe_index is not None:
        await run_in_threadpool(recipe_index.mirror, [result.entry])
    background_tasks.add_task(
        promote_deployment_to_production,
        result.index_commit_sha or result.commit_sha,
        publisher.store.branch,
    )


@router.post("/generate-blog", dependencies=[Depends(enforce_rate_limit)])
async def generate_blog(
    payload: GenerateBlogRequest,
    background_tasks: BackgroundTasks,
    publisher: Optional[ContentPublisher] = Depends(get_content_publisher),
    openai_client: Optional[OpenAIClient] = Depends(get_openai_client),
    recipe_index: Optional[RecipeIndex] = Depends(get_recipe_index),
):
    dish = payload.dish_data
    if dish is None or not dish.name:
        raise ValidationError("dishData with name is required")
    slug = create_slug(dish.name)
    if not slug:
        raise ValidationError("dishData.name must contain at least one letter or number (a-z, 0-9)")
    if publisher is None:
        raise ConfigurationError(
            "GitHub credentials not configured. Set GITHUB_TOKEN and GITHUB_REPO environment variables."
        )
    if openai_client is None:
        raise ConfigurationError("OPENAI_API_KEY is not set in environment variables")

    existing_url = await run_in_threadpool(publisher.find_existing, slug)
    if existing_url:
        logger.info("[generate-blog] Blog already exists for %s, skipping generation", dish.name)
        # A post left out of the index by an earlier failed write gets its entry back here
        repaired = await run_in_threadpool(publisher.ensure_indexed, slug, dish.name)
        if repaired is not None:
            await _after_index_write(repaired, background_tasks, publisher, recipe_index)
        return _skipped_response(slug, existing_url)

    content_html = await openai_client.generate_blog_post(dish)
    image_url = await openai_client.generate_blog_image(dish)
    published_at = utc_now()
    page = render_blog_page(dish, content_html, image_url=image_url, published_at=published_at)

    # Shielded so a client disconnect cannot leave the artifact written but missing from the index
    result = await asyncio.shield(run_in_threadpool(
        publisher.publish_if_absent, slug, page, dish.name, image_url, published_at
    ))
    await _after_index_write(result, background_tasks, publisher, recipe_index)

    if not result.created:
        return _skipped_response(slug, result.url)
    return {
        "success": True,
        "url": result.url,
        "blogUrl": result.url,
        "slug": slug,
        "imageUrl": image_url,
        "message": "Blog post created successfully. It will be available on the website shortly.",
    }



@router.get("/blog-exists/{slug}")
def blog_exists(slug: str, publisher: Optional[ContentPublisher] = Depends(find_content_publisher)):
    validate_slug(slug)
    site_url = get_public_site_url()
    blog_url = f"{site_url}/blogs/{slug}.html"

    exists = False
    if publisher is not None:
        try:
            exists = publisher.find_existing(slug) is not None
        except ExternalServiceError as e:
            logger.warning("[blog-exists] Content store check failed for %s, trying the site: %s", slug, e.message)
    if not exists:
        exists = url_exists(blog_url)

    if not exists:
        return BlogExistsResponse(exists=False, slug=slug).model_dump(by_alias=True, exclude_unset=True)

    image_url = blog_image_url(site_url, slug)
    return BlogExistsResponse(
        exists=True,
        slug=slug,
        blog_url=blog_url,
        image_url=image_url if url_exists(image_url) else None,
    ).model_dump(by_alias=True)
