import requests

from oksnap.core.config import VercelConfig
from oksnap.services.deployment import promote_deployment_to_production

from http_fakes import FakeResponse, FakeSession

CONFIG = VercelConfig(token="vercel-token", project_id="prj_1", team_id="team_1")


def test_skipped_without_credentials(monkeypatch):
    monkeypatch.delenv("VERCEL_TOKEN", raising=False)
    monkeypatch.delenv("VERCEL_PROJECT_ID", raising=False)
    result = promote_deployment_to_production("abc")
    assert result == {"success": False, "reason": "Vercel credentials not configured"}


def test_promotes_preview_deployment():
    session = FakeSession(
        FakeResponse(200, {"deployments": [{"id": "dpl_1", "target": "preview", "url": "x.vercel.app"}]}),
        FakeResponse(200, {"url": "ok-snap.com"}),
    )
    result = promote_deployment_to_production("abc", "site", config=CONFIG, session=session)

    assert result == {"success": True, "url": "ok-snap.com", "deploymentId": "dpl_1"}
    lookup, promote = session.calls
    assert lookup["params"]["gitSource.commitSha"] == "abc"
    assert lookup["params"]["teamId"] == "team_1"
    assert promote["url"] == "https://api.vercel.com/v13/deployments/dpl_1/promote"
    assert promote["json"] == {"target": "production"}
    assert promote["timeout"] == 15


def test_already_production_is_not_promoted_again():
    session = FakeSession(FakeResponse(200, {"deployments": [{"id": "dpl_1", "target": "production", "url": "u"}]}))
    result = promote_deployment_to_production("abc", config=CONFIG, session=session)
    assert result["alreadyProduction"] is True
    assert len(session.calls) == 1


def test_no_deployment_found():
    session = FakeSession(FakeResponse(200, {"deployments": []}))
    assert promote_deployment_to_production("abc", config=CONFIG, session=session)["reason"] == "No deployment found"


def test_never_raises():
    session = FakeSession(requests.exceptions.ConnectionError("down"))
    result = promote_deployment_to_production("abc", config=CONFIG, session=session)
    assert result["success"] is False
    assert result["reason"] == "Exception"


def test_default_transport_uses_module_level_requests(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, **kw: FakeResponse(200, {"deployments": []}))
    result = promote_deployment_to_production("abc", config=CONFIG)
    assert result["reason"] == "No deployment found"
