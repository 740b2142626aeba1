"""
Feedback endpoint: turns in-app bug reports and feature requests into
GitHub issues.

Run with ``jobeval serve-feedback`` (uvicorn) or mount the app returned
by ``create_app`` elsewhere. Each app instance owns its rate limiter.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import requests
from bs4 import BeautifulSoup
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response

from .config import Settings
from .logger import get_logger
from .schema import validate_feedback_payload

logger = get_logger()

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = "JobEval-Feedback-System"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

LABELS = {
    "bug": ["bug", "needs-triage", "feedback"],
    "feature": ["enhancement", "needs-review", "feedback"],
}

FOOTERS = {
    "bug": "*This issue was automatically created via the JobEval in-app feedback system.*",
    "feature": "*This feature request was automatically created via the JobEval in-app feedback system.*",
}


class FeedbackConfigError(Exception):
    """GitHub credentials or repository are not configured."""
    pass


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: Optional[float] = None


class RateLimiter:
    """Fixed-window request counter keyed by client address."""

    def __init__(self, limit: int = 5, window_seconds: float = 3600, clock: Callable[[], float] = time.time):
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: Dict[str, Dict[str, float]] = {}

    def check(self, key: str) -> RateLimitResult:
        now = self.clock()
        record = self._windows.get(key)

        if record is None or now > record["reset_at"]:
            self._windows[key] = {"count": 1, "reset_at": now + self.window_seconds}
            return RateLimitResult(allowed=True, remaining=self.limit - 1)

        if record["count"] >= self.limit:
            return RateLimitResult(allowed=False, remaining=0, reset_at=record["reset_at"])

        record["count"] += 1
        return RateLimitResult(allowed=True, remaining=self.limit - int(record["count"]))


def sanitize_input(text: Any, max_length: int = 10000) -> str:
    """Strip HTML tags, truncate to ``max_length`` and trim. Non-strings become ''."""
    if not text or not isinstance(text, str):
        return ""
    stripped = BeautifulSoup(text, "html.parser").get_text()
    return stripped[:max_length].strip()


def _section(heading: str, value: Any, fallback: Optional[str] = None) -> str:
    return f"## {heading}\n\n{sanitize_input(value or fallback)}"


def format_bug_report(data: Dict[str, Any]) -> str:
    env = data.get("environment") or {}
    environment = "\n".join([
        f"- **JobEval Version:** {sanitize_input(env.get('version'))}",
        f"- **Flow:** {sanitize_input(env.get('flow'))}",
        f"- **Browser:** {sanitize_input(env.get('browser'))}",
        f"- **OS:** {sanitize_input(env.get('os'))}",
        f"- **Device:** {sanitize_input(env.get('device'))}",
    ])
    return "\n\n".join([
        _section("Bug Description", data.get("description")),
        _section("Steps to Reproduce", data.get("stepsToReproduce")),
        _section("Expected Behavior", data.get("expectedBehavior")),
        _section("Actual Behavior", data.get("actualBehavior")),
        f"## Environment\n\n{environment}",
        _section("Data Context", data.get("dataContext"), "Not provided"),
        _section("Additional Context", data.get("additionalContext"), "None provided"),
        "---",
        FOOTERS["bug"],
    ])


def format_feature_request(data: Dict[str, Any]) -> str:
    return "\n\n".join([
        _section("Feature Description", data.get("description")),
        _section("Problem or Use Case", data.get("problem")),
        _section("Proposed Solution", data.get("proposedSolution")),
        _section("Alternatives Considered", data.get("alternatives"), "Not provided"),
        _section("Feature Scope", data.get("scope"), "Not specified"),
        _section("Priority", data.get("priority"), "Medium"),
        _section("Additional Context", data.get("additionalContext"), "None provided"),
        "---",
        FOOTERS["feature"],
    ])


FORMATTERS = {"bug": format_bug_report, "feature": format_feature_request}


class GitHubIssueClient:
    """Creates issues in one repository using a fine-grained token."""

    def __init__(self, token: str, owner: str, repo: str, timeout: int = 30):
        self.token = token
        self.owner = owner
        self.repo = repo
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "GitHubIssueClient":
        return cls(settings.github_token, settings.github_repo_owner, settings.github_repo_name)

    def create_issue(self, title: str, body: str, labels) -> Dict[str, Any]:
        if not (self.token and self.owner and self.repo):
            raise FeedbackConfigError("Missing required environment variables")

        url = f"{GITHUB_API_URL}/repos/{self.owner}/{self.repo}/issues"
        logger.record_api_call()
        resp = requests.post(
            url,
            json={"title": title, "body": body, "labels": list(labels)},
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/vnd.github.v3+json",
                "Content-Type": "application/json",
                "User-Agent": USER_AGENT,
            },
            timeout=self.timeout,
        )
        if not resp.ok:
            logger.error("GitHub API error", status=resp.status_code, body=resp.text[:500])
            raise RuntimeError(f"GitHub API error: {resp.status_code}")
        return resp.json()


def _json(payload: Dict[str, Any], status_code: int, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(payload, status_code=status_code, headers={**CORS_HEADERS, **(headers or {})})


def _client_key(request: Request) -> str:
    return request.headers.get("x-forwarded-for") or request.headers.get("x-real-ip") or "unknown"


def create_app(
    settings: Optional[Settings] = None,
    rate_limiter: Optional[RateLimiter] = None,
    issue_client: Optional[GitHubIssueClient] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    limiter = rate_limiter or RateLimiter(
        limit=settings.feedback_rate_limit,
        window_seconds=settings.feedback_rate_window_seconds,
    )
    client = issue_client or GitHubIssueClient.from_settings(settings)

    app = FastAPI(title="JobEval Feedback", version="1.0.0")
    app.state.rate_limiter = limiter
    app.state.issue_client = client

    @app.api_route("/api/feedback", methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
    async def feedback(request: Request):
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)
        if request.method != "POST":
            return _json({"error": "Method not allowed"}, 405)

        rate = limiter.check(_client_key(request))
        if not rate.allowed:
            reset_at = datetime.fromtimestamp(rate.reset_at, tz=timezone.utc).isoformat().replace("+00:00", "Z")
            logger.warning("Feedback rate limit exceeded", client=_client_key(request))
            return _json(
                {"error": "Rate limit exceeded. Please try again later.", "resetAt": reset_at},
                429,
                {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": reset_at},
            )

        try:
            body = await request.json()
        except ValueError:
            body = None

        status, errors = validate_feedback_payload(body)
        if errors:
            return _json({"error": errors[0]}, status)

        feedback_type = body["type"]
        data = body["data"]
        try:
            issue = await run_in_threadpool(
                client.create_issue,
                sanitize_input(data["title"], 200),
                FORMATTERS[feedback_type](data),
                LABELS[feedback_type],
            )
        except Exception as e:
            logger.error("Failed to create feedback issue", type=feedback_type, error=str(e))
            payload = {"error": "Failed to submit feedback. Please try again."}
            if settings.is_development:
                payload["details"] = str(e)
            return _json(payload, 500)

        logger.info("Feedback issue created", type=feedback_type, issue_number=issue.get("number"))
        return _json(
            {
                "success": True,
                "issueNumber": issue.get("number"),
                "issueUrl": issue.get("html_url"),
                "message": "Feedback submitted successfully!",
            },
            201,
            {"X-RateLimit-Remaining": str(rate.remaining)},
        )

    return app
