"""
Promote the Vercel preview deployment built from a content commit to production.
Runs as a background task after publishing; it only ever logs, never raises.
"""
import logging
from typing import Optional

import requests

from oksnap.core.config import DEPLOYMENT_API_TIMEOUT, VercelConfig, get_vercel_config

logger = logging.getLogger(__name__)

VERCEL_API_URL = "https://api.vercel.com"


def _team_params(config: VercelConfig) -> dict:
    return {"teamId": config.team_id} if config.team_id else {}


def promote_deployment_to_production(commit_sha: Optional[str], branch: str = "site",
                                     config: Optional[VercelConfig] = None,
                                     session: Optional[requests.Session] = None) -> dict:
    """
    Returns a small status dict ({"success": bool, ...}) for logging and tests.
    """
    config = config or get_vercel_config()
    if config is None:
        logger.info("[promote-deployment] Vercel credentials not configured, skipping promotion")
        return {"success": False, "reason": "Vercel credentials not configured"}
    if not commit_sha:
        return {"success": False, "reason": "No commit sha"}

    http = session or requests
    headers = {"Authorization": f"Bearer {config.token}", "Content-Type": "application/json"}
    try:
        params = {
            "projectId": config.project_id,
            "target": "preview",
            "gitSource.commitSha": commit_sha,
            **_team_params(config),
        }
        r = http.get(f"{VERCEL_API_URL}/v6/deployments", params=params, headers=headers,
                     timeout=DEPLOYMENT_API_TIMEOUT)
        if not r.ok:
            logger.warning("[promote-deployment] Failed to fetch deployments: %s", r.status_code)
            return {"success": False, "reason": "Failed to fetch deployments"}

        deployments = r.json().get("deployments") or []
        if not deployments:
            logger.info("[promote-deployment] No deployment found for commit %s on %s", commit_sha, branch)
            return {"success": False, "reason": "No deployment found"}

        deployment = deployments[0]
        if deployment.get("target") == "production":
            logger.info("[promote-deployment] Deployment already in production: %s", deployment.get("url"))
            return {"success": True, "alreadyProduction": True, "url": deployment.get("url")}

        r = http.post(
            f"{VERCEL_API_URL}/v13/deployments/{deployment['id']}/promote",
            params=_team_params(config),
            json={"target": "production"},
            headers=headers,
            timeout=DEPLOYMENT_API_TIMEOUT,
        )
        if not r.ok:
            logger.error("[promote-deployment] Failed to promote deployment: %s %s", r.status_code, r.text[:300])
            return {"success": False, "reason": "Failed to promote"}

        url = (r.json() or {}).get("url") if r.content else None
        logger.info("[promote-deployment] Promoted deployment %s to production", deployment["id"])
        return {"success": True, "url": url, "deploymentId": deployment["id"]}
    except (requests.exceptions.RequestException, ValueError, KeyError) as e:
        logger.error("[promote-deployment] Error promoting deployment: %s", e)
        return {"success": False, "reason": "Exception", "error": str(e)}
