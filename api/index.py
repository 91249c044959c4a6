"""
Vercel serverless entry point. @vercel/python picks up the module-level `app`.
"""
import sys
from pathlib import Path

# Repository root, so `oksnap` imports resolve inside the function bundle
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from oksnap.main import app  # noqa: E402

__all__ = ["app"]
