"""Security alert extractor."""

from ..models import SecurityAlert
from .prs import parse_datetime_required


def extract_security_alert(repo: str, alert_data: dict) -> SecurityAlert:
    """Extract a Dependabot alert from GitHub API response."""
    dependency = alert_data.get("dependency") or {}
    package = dependency.get("package") or {}
    advisory = alert_data.get("security_advisory") or {}

    return SecurityAlert(
        repo=repo,
        dependency_name=package.get("name", "unknown"),
        created_at=parse_datetime_required(alert_data["created_at"]),
        number=alert_data.get("number"),
        severity=advisory.get("severity"),
    )
