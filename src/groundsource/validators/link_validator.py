"""Link validation: URL shape, allow/deny lists, robots.txt and an HTTP probe."""

import logging
import re
from typing import List, Optional, Union
from urllib.parse import urlsplit, urlunsplit

from groundsource.app_utils.config_schema import LinkValidationOptions
from groundsource.core.constants import (
    ERROR_PENALTY,
    INFO_PENALTY,
    REDIRECT_PENALTY,
    SLOW_RESPONSE_MS,
    WARNING_PENALTY,
)
from groundsource.core.domains import Domain
from groundsource.core.errors import RedirectLimitError, ValidationError
from groundsource.core.source import (
    Issue,
    IssueSeverity,
    IssueType,
    LinkMetadata,
    ValidationResult,
)
from groundsource.scrapers.url_fetcher import FetchResponse, HttpFetcher
from groundsource.validators.robots import RobotsCache

logger = logging.getLogger(__name__)

BROKEN_LINK_STATUSES = (404, 410)

_CANONICAL_LINK = re.compile(r'<([^>]+)>\s*;[^,]*rel="?canonical"?', re.IGNORECASE)
_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Lower-case scheme and host, drop default port and fragment."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if parts.port and parts.port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{parts.port}"
    path = parts.path or "/"
    return urlunsplit((scheme, host, path, parts.query, ""))


def is_canonical(url: str, response: FetchResponse) -> bool:
    """Check the response's Link header for a canonical URL.

    A response without a canonical link counts as canonical.
    """
    link_header = response.headers.get("link", "")
    match = _CANONICAL_LINK.search(link_header)
    if not match:
        return True
    return normalize_url(match.group(1)) == normalize_url(url)


def domain_matches(hostname: str, domain: str) -> bool:
    """Match a host against a domain or any of its subdomains."""
    domain = domain.lower().lstrip(".")
    return hostname == domain or hostname.endswith("." + domain)


def calculate_link_score(issues: List[Issue], metadata: LinkMetadata) -> float:
    score = 1.0
    for issue in issues:
        if issue.severity == IssueSeverity.ERROR:
            score -= ERROR_PENALTY
        elif issue.severity == IssueSeverity.WARNING:
            score -= WARNING_PENALTY
        else:
            score -= INFO_PENALTY
    if metadata.response_time > SLOW_RESPONSE_MS:
        score -= 0.1
    score -= REDIRECT_PENALTY * metadata.redirect_count
    if metadata.is_canonical:
        score += 0.1
    if metadata.robots_allowed:
        score += 0.1
    return max(0.0, min(1.0, score))


class LinkValidator:
    """Checks that a URL is allowed, reachable and healthy."""

    def __init__(
        self,
        fetcher: Optional[HttpFetcher] = None,
        robots_cache: Optional[RobotsCache] = None,
    ):
        self.fetcher = fetcher or HttpFetcher()
        self.robots_cache = robots_cache or RobotsCache(self.fetcher)

    async def validate(
        self,
        url: str,
        domain: Union[Domain, str, None] = None,
        options: Optional[LinkValidationOptions] = None,
    ) -> ValidationResult:
        """Validate a URL.

        Args:
            url: Address to validate
            domain: Knowledge domain the link is validated for (logging only)
            options: Link validation options

        Returns:
            ValidationResult with LinkMetadata

        Raises:
            ValidationError: If the URL is malformed
            RateLimitError: If the host answers HTTP 429
            NetworkError: If the host cannot be reached
        """
        options = options or LinkValidationOptions()
        parts = self._parse(url)
        hostname = (parts.hostname or "").lower()

        metadata = LinkMetadata(
            url=url,
            normalized_url=normalize_url(url),
            protocol=parts.scheme.lower(),
            domain=hostname,
            path=parts.path,
            query=parts.query,
            fragment=parts.fragment,
        )
        issues: List[Issue] = []

        allowed_protocols = [p.lower().rstrip(":") for p in options.allowed_protocols]
        if metadata.protocol not in allowed_protocols:
            issues.append(
                Issue(
                    type=IssueType.PROTOCOL,
                    severity=IssueSeverity.ERROR,
                    message=f"Protocol '{metadata.protocol}' is not allowed",
                    suggestion=f"Use one of: {', '.join(allowed_protocols)}",
                )
            )

        if options.check_whitelist and options.allowed_domains:
            if not any(domain_matches(hostname, d) for d in options.allowed_domains):
                issues.append(
                    Issue(
                        type=IssueType.DOMAIN,
                        severity=IssueSeverity.ERROR,
                        message=f"Domain '{hostname}' is not in whitelist",
                        suggestion=f"Use one of: {', '.join(options.allowed_domains)}",
                    )
                )

        if options.check_blacklist and options.blocked_domains:
            if any(domain_matches(hostname, d) for d in options.blocked_domains):
                issues.append(
                    Issue(
                        type=IssueType.DOMAIN,
                        severity=IssueSeverity.ERROR,
                        message=f"Domain '{hostname}' is blacklisted",
                    )
                )

        has_errors = any(i.severity == IssueSeverity.ERROR for i in issues)

        if options.validate_robots_txt and not has_errors:
            metadata.robots_allowed = await self.robots_cache.is_allowed(
                url, options.user_agent
            )
            if not metadata.robots_allowed:
                issues.append(
                    Issue(
                        type=IssueType.ROBOTS,
                        severity=IssueSeverity.WARNING,
                        message="URL is disallowed by robots.txt",
                    )
                )

        if not has_errors:
            issues.extend(await self._probe(url, metadata, options))

        score = calculate_link_score(issues, metadata)
        result = ValidationResult.from_issues(issues, score, metadata)
        logger.debug(
            f"Link {url} ({domain or 'no domain'}): valid={result.is_valid}, "
            f"score={result.score:.2f}, issues={len(issues)}"
        )
        return result

    @staticmethod
    def _parse(url: str):
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("URL must be a non-empty string", field="url")
        try:
            parts = urlsplit(url.strip())
            # Raises ValueError for a malformed port
            _ = parts.port
        except ValueError as e:
            raise ValidationError(f"Invalid URL format: {e}", field="url") from e
        if not parts.scheme or not parts.hostname:
            raise ValidationError(f"Invalid URL format: {url}", field="url")
        return parts

    async def _probe(
        self, url: str, metadata: LinkMetadata, options: LinkValidationOptions
    ) -> List[Issue]:
        issues: List[Issue] = []
        try:
            response = await self.fetcher.fetch(
                url,
                timeout_ms=options.timeout,
                max_redirects=options.max_redirects,
                max_size=options.max_response_size,
                user_agent=options.user_agent,
                read_body=False,
            )
        except RedirectLimitError as e:
            return [
                Issue(
                    type=IssueType.REDIRECT,
                    severity=IssueSeverity.ERROR,
                    message=f"Too many redirects: {e}",
                    suggestion="Use the final URL instead",
                )
            ]

        metadata.status_code = response.status
        metadata.final_url = response.final_url
        metadata.content_type = response.headers.get("content-type")
        content_length = response.headers.get("content-length", "")
        if content_length.isdigit():
            metadata.content_length = int(content_length)
        metadata.last_modified = response.headers.get("last-modified")
        metadata.redirect_chain = list(response.redirect_chain)
        metadata.redirect_count = response.redirect_count
        metadata.response_time = response.elapsed_ms
        metadata.is_canonical = is_canonical(url, response)

        status = response.status
        if status >= 400:
            if status >= 500:
                severity = IssueSeverity.ERROR
            elif status in BROKEN_LINK_STATUSES and options.check_broken_links:
                severity = IssueSeverity.ERROR
            else:
                severity = IssueSeverity.WARNING
            issues.append(
                Issue(
                    type=IssueType.STATUS,
                    severity=severity,
                    message=f"HTTP {status} error",
                    code=str(status),
                )
            )

        if metadata.redirect_count > 0:
            issues.append(
                Issue(
                    type=IssueType.REDIRECT,
                    severity=IssueSeverity.INFO,
                    message=f"URL has {metadata.redirect_count} redirect(s)",
                    suggestion=f"Consider using final URL: {response.final_url}",
                )
            )

        if options.require_canonical and not metadata.is_canonical:
            issues.append(
                Issue(
                    type=IssueType.FORMAT,
                    severity=IssueSeverity.WARNING,
                    message="URL is not canonical",
                    suggestion="Use the canonical URL specified in the page",
                )
            )

        return issues

    def clear_robots_cache(self) -> None:
        self.robots_cache.clear()
