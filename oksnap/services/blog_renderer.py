"""
Render a generated blog post into the standalone HTML page stored at blogs/<slug>.html.
The generated body is trusted HTML from the model; everything else is escaped.
"""
import re
from datetime import datetime
from html import escape
from typing import Optional

from oksnap.services.prompts import display_name
from oksnap.utils.time_utils import utc_now

_OPENING_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n?")
_CLOSING_FENCE = re.compile(r"\n?```\s*$")


def clean_generated_html(content: str) -> str:
    """Strip the Markdown code fence the model sometimes wraps HTML in."""
    cleaned = (content or "").strip()
    if cleaned.startswith("```"):
        cleaned = _OPENING_FENCE.sub("", cleaned, count=1)
        cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def _featured_image(image_url: str, alt: str) -> str:
    return f"""
            <div class="blog-featured-image">
                <img src="{escape(image_url)}" alt="{escape(alt)}" style="width: 100%; max-width: 800px; height: auto; border-radius: 12px; margin: 2rem auto; display: block; box-shadow: 0 4px 12px rgba(0, 0, 0, 0.1);">
            </div>"""


def render_blog_page(dish, content_html: str, image_url: Optional[str] = None,
                     published_at: Optional[datetime] = None) -> str:
    published_at = published_at or utc_now()
    heading = display_name(dish)
    title = escape(dish.name)
    keywords = ", ".join(k for k in (dish.name, "Korean food", "Korean recipe", dish.name_korean or "", "Hansik"))
    og_image = f'<meta property="og:image" content="{escape(image_url)}">' if image_url else ""
    featured = _featured_image(image_url, heading) if image_url else ""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <meta name="description" content="Learn how to make {escape(heading)} - Authentic recipe with step-by-step instructions.">
    <meta name="keywords" content="{escape(keywords)}">
    {og_image}
    <title>{title} Recipe - OK-Snap</title>
    <link rel="stylesheet" href="../styles.css">
</head>
<body>
    <header class="header">
        <div class="container">
            <div class="header-content">
                <h1 class="logo"><a href="../index.html" style="text-decoration: none; color: inherit;">OK-Snap</a></h1>
                <nav class="nav">
                    <a href="../index.html" class="nav-link">Home</a>
                    <a href="../blog.html" class="nav-link">Blog</a>
                    <a href="../about.html" class="nav-link">About</a>
                    <a href="../contact.html" class="nav-link">Contact</a>
                </nav>
            </div>
        </div>
    </header>

    <main class="main">
        <article class="blog-post">
            <div class="blog-post-header">
                <h1 class="blog-post-title">{escape(heading)}</h1>
                <div class="blog-post-meta">
                    Published: {published_at.strftime("%B %d, %Y")}
                </div>
            </div>{featured}
            <div class="blog-post-content">
                {content_html}
            </div>
        </article>
    </main>

    <footer class="footer">
        <div class="container">
            <p>&copy; {published_at.year} OK-Snap. All rights reserved.</p>
        </div>
    </footer>
</body>
</html>"""
