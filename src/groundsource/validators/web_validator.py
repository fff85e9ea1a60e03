"""Web page validation: page metadata plus security, accessibility, SEO,
performance and structure checks.

Runs on top of the link validator: a URL whose link validation fails is
never downloaded.
"""

import json
import logging
import re
from typing import Dict, List, Optional, Union

from bs4 import BeautifulSoup

from groundsource.app_utils.config_schema import (
    LinkValidationOptions,
    WebValidationOptions,
)
from groundsource.core.constants import (
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    ERROR_PENALTY,
    INFO_PENALTY,
    MAX_PAGE_SIZE,
    MAX_SCRIPTS,
    MAX_STYLESHEETS,
    SLOW_RESPONSE_MS,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
    WARNING_PENALTY,
)
from groundsource.core.domains import Domain
from groundsource.core.errors import ScrapingError
from groundsource.core.source import (
    Issue,
    IssueSeverity,
    IssueType,
    ValidationResult,
    WebMetadata,
)
from groundsource.scrapers.url_fetcher import FetchResponse, HttpFetcher
from groundsource.utils.web_search import extract_main_content
from groundsource.validators.content_validator import ContentValidator
from groundsource.validators.link_validator import LinkValidator

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")
FONT_EXTENSIONS = (".woff", ".woff2", ".ttf", ".otf", ".eot")
UNLABELED_INPUT_TYPES = ("hidden", "submit", "button", "reset", "image")
_CHARSET = re.compile(r"charset=([\w-]+)", re.IGNORECASE)

SECURITY_HEADERS = {
    "content_security_policy": "content-security-policy",
    "strict_transport_security": "strict-transport-security",
    "x_frame_options": "x-frame-options",
    "referrer_policy": "referrer-policy",
    "permissions_policy": "permissions-policy",
}


def _meta(soup: BeautifulSoup, name: str) -> Optional[str]:
    # name="Description" matches too
    tag = soup.find(
        "meta", attrs={"name": re.compile(f"^{re.escape(name)}$", re.IGNORECASE)}
    )
    if tag and tag.get("content"):
        return tag["content"].strip()
    return None


def _has_rel(tag, *values: str) -> bool:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return any(r.lower() in values for r in rel)


def extract_web_metadata(soup: BeautifulSoup, response: FetchResponse) -> WebMetadata:
    """Pull page facts out of a parsed document and its response."""
    metadata = WebMetadata()

    if soup.title:
        metadata.title = soup.title.get_text(strip=True)
    metadata.description = _meta(soup, "description") or ""
    metadata.viewport = _meta(soup, "viewport")
    metadata.author = _meta(soup, "author")
    keywords = _meta(soup, "keywords")
    if keywords:
        metadata.keywords = [k.strip() for k in keywords.split(",") if k.strip()]

    html_tag = soup.find("html")
    if html_tag and html_tag.get("lang"):
        metadata.language = html_tag["lang"]

    charset_tag = soup.find("meta", attrs={"charset": True})
    if charset_tag:
        metadata.charset = charset_tag["charset"]
    else:
        match = _CHARSET.search(response.content_type)
        if match:
            metadata.charset = match.group(1)

    for tag in soup.find_all("meta", attrs={"property": re.compile(r"^og:")}):
        if tag.get("content"):
            metadata.open_graph[tag["property"][3:]] = tag["content"]
    for tag in soup.find_all("meta", attrs={"name": re.compile(r"^twitter:")}):
        if tag.get("content"):
            metadata.twitter[tag["name"][8:]] = tag["content"]

    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            metadata.schema_org.append(json.loads(tag.string or ""))
        except json.JSONDecodeError:
            logger.debug(f"Ignoring malformed JSON-LD block on {response.url}")

    links = soup.find_all("link")
    metadata.resource_counts = {
        "scripts": len(
            [
                s
                for s in soup.find_all("script")
                if s.get("type") != "application/ld+json"
            ]
        ),
        "styles": len([lk for lk in links if _has_rel(lk, "stylesheet")])
        + len(soup.find_all("style")),
        "images": len(soup.find_all("img")),
        "fonts": len(
            [
                lk
                for lk in links
                if lk.get("as") == "font"
                or (lk.get("href") or "").lower().endswith(FONT_EXTENSIONS)
            ]
        ),
        "iframes": len(soup.find_all("iframe")),
    }

    metadata.headers = dict(response.headers)
    metadata.load_time = response.elapsed_ms
    metadata.size = response.size
    metadata.security_headers = {
        key: response.headers.get(header) for key, header in SECURITY_HEADERS.items()
    }
    return metadata


def check_security(metadata: WebMetadata) -> List[Issue]:
    required = [
        (
            "content_security_policy",
            "Missing Content Security Policy header",
            "Add a Content-Security-Policy header to prevent XSS attacks",
        ),
        (
            "strict_transport_security",
            "Missing HTTP Strict Transport Security header",
            "Add a Strict-Transport-Security header to enforce HTTPS",
        ),
        (
            "x_frame_options",
            "Missing X-Frame-Options header",
            "Add an X-Frame-Options header to prevent clickjacking",
        ),
    ]
    return [
        Issue(
            type=IssueType.SECURITY,
            severity=IssueSeverity.WARNING,
            message=message,
            suggestion=suggestion,
        )
        for key, message, suggestion in required
        if not metadata.security_headers.get(key)
    ]


def heading_levels(soup: BeautifulSoup) -> List[int]:
    return [
        int(tag.name[1])
        for tag in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])
    ]


def _is_labeled(soup: BeautifulSoup, field) -> bool:
    if field.get("aria-label") or field.get("aria-labelledby"):
        return True
    if field.find_parent("label"):
        return True
    field_id = field.get("id")
    return bool(field_id and soup.find("label", attrs={"for": field_id}))


def check_accessibility(soup: BeautifulSoup) -> List[Issue]:
    issues = []

    missing_alt = [img for img in soup.find_all("img") if not img.get("alt")]
    if missing_alt:
        issues.append(
            Issue(
                type=IssueType.ACCESSIBILITY,
                severity=IssueSeverity.WARNING,
                message=f"{len(missing_alt)} image(s) missing alt text",
                suggestion="Add descriptive alt text to every image",
            )
        )

    fields = [
        f
        for f in soup.find_all(["input", "select", "textarea"])
        if (f.get("type") or "").lower() not in UNLABELED_INPUT_TYPES
    ]
    unlabeled = [f for f in fields if not _is_labeled(soup, f)]
    if unlabeled:
        issues.append(
            Issue(
                type=IssueType.ACCESSIBILITY,
                severity=IssueSeverity.WARNING,
                message=f"{len(unlabeled)} form field(s) missing an associated label",
                suggestion='Add a label element with a matching "for" attribute',
            )
        )

    levels = heading_levels(soup)
    for previous, current in zip(levels, levels[1:]):
        if current > previous + 1:
            issues.append(
                Issue(
                    type=IssueType.ACCESSIBILITY,
                    severity=IssueSeverity.WARNING,
                    message=f"Skipped heading level from h{previous} to h{current}",
                    suggestion="Maintain a proper heading hierarchy",
                )
            )
    return issues


def check_seo(soup: BeautifulSoup, metadata: WebMetadata) -> List[Issue]:
    issues = []

    if not metadata.title:
        issues.append(
            Issue(
                type=IssueType.SEO,
                severity=IssueSeverity.ERROR,
                message="Missing page title",
                suggestion="Add a <title> element",
            )
        )
    elif not TITLE_MIN_LENGTH <= len(metadata.title) <= TITLE_MAX_LENGTH:
        issues.append(
            Issue(
                type=IssueType.SEO,
                severity=IssueSeverity.WARNING,
                message=(
                    f"Title length ({len(metadata.title)}) is outside "
                    f"{TITLE_MIN_LENGTH}-{TITLE_MAX_LENGTH} characters"
                ),
            )
        )

    if not metadata.description:
        issues.append(
            Issue(
                type=IssueType.SEO,
                severity=IssueSeverity.WARNING,
                message="Missing meta description",
                suggestion="Add a meta description",
            )
        )
    elif (
        not DESCRIPTION_MIN_LENGTH
        <= len(metadata.description)
        <= DESCRIPTION_MAX_LENGTH
    ):
        issues.append(
            Issue(
                type=IssueType.SEO,
                severity=IssueSeverity.WARNING,
                message=(
                    f"Description length ({len(metadata.description)}) is outside "
                    f"{DESCRIPTION_MIN_LENGTH}-{DESCRIPTION_MAX_LENGTH} characters"
                ),
            )
        )

    if not soup.find("h1"):
        issues.append(
            Issue(
                type=IssueType.SEO,
                severity=IssueSeverity.WARNING,
                message="Missing H1 heading",
                suggestion="Add a primary H1 heading",
            )
        )

    if not metadata.keywords:
        issues.append(
            Issue(
                type=IssueType.SEO,
                severity=IssueSeverity.INFO,
                message="Missing meta keywords",
            )
        )
    return issues


def check_performance(
    metadata: WebMetadata, options: WebValidationOptions
) -> List[Issue]:
    issues = []

    if metadata.load_time > options.max_load_time:
        issues.append(
            Issue(
                type=IssueType.PERFORMANCE,
                severity=IssueSeverity.WARNING,
                message=(
                    f"Page load time ({metadata.load_time:.0f}ms) exceeds "
                    f"{options.max_load_time}ms"
                ),
            )
        )
    if metadata.resource_counts.get("scripts", 0) > MAX_SCRIPTS:
        issues.append(
            Issue(
                type=IssueType.PERFORMANCE,
                severity=IssueSeverity.WARNING,
                message=f"Too many scripts ({metadata.resource_counts['scripts']})",
                suggestion="Bundle or defer scripts",
            )
        )
    if metadata.resource_counts.get("styles", 0) > MAX_STYLESHEETS:
        issues.append(
            Issue(
                type=IssueType.PERFORMANCE,
                severity=IssueSeverity.WARNING,
                message=f"Too many stylesheets ({metadata.resource_counts['styles']})",
                suggestion="Combine stylesheets",
            )
        )
    if metadata.size > MAX_PAGE_SIZE:
        issues.append(
            Issue(
                type=IssueType.PERFORMANCE,
                severity=IssueSeverity.WARNING,
                message=f"Page size ({metadata.size} bytes) exceeds 5MB",
            )
        )
    return issues


def check_structure(soup: BeautifulSoup, options: WebValidationOptions) -> List[Issue]:
    issues = []

    for region in ("header", "main", "footer"):
        if not soup.find(region):
            issues.append(
                Issue(
                    type=IssueType.STRUCTURE,
                    severity=IssueSeverity.INFO,
                    message=f"Missing {region} element",
                    suggestion=f"Add a semantic {region} element",
                )
            )

    out_of_range = sorted(
        {
            level
            for level in heading_levels(soup)
            if not options.min_heading_level <= level <= options.max_heading_level
        }
    )
    if out_of_range:
        issues.append(
            Issue(
                type=IssueType.STRUCTURE,
                severity=IssueSeverity.WARNING,
                message=(
                    "Heading levels outside allowed range: "
                    + ", ".join(f"h{level}" for level in out_of_range)
                ),
            )
        )

    links = soup.find_all("link")
    if options.require_favicon and not any(
        _has_rel(lk, "icon", "shortcut") for lk in links
    ):
        issues.append(
            Issue(
                type=IssueType.STRUCTURE,
                severity=IssueSeverity.INFO,
                message="Missing favicon",
                suggestion="Add a favicon link tag",
            )
        )
    if options.require_manifest and not any(_has_rel(lk, "manifest") for lk in links):
        issues.append(
            Issue(
                type=IssueType.STRUCTURE,
                severity=IssueSeverity.INFO,
                message="Missing web app manifest",
                suggestion="Add a web app manifest link",
            )
        )
    return issues


def calculate_web_score(issues: List[Issue], metadata: WebMetadata) -> float:
    score = 1.0
    for issue in issues:
        if issue.severity == IssueSeverity.ERROR:
            score -= ERROR_PENALTY
        elif issue.severity == IssueSeverity.WARNING:
            score -= WARNING_PENALTY
        else:
            score -= INFO_PENALTY
    if metadata.load_time > SLOW_RESPONSE_MS:
        score -= 0.1
    if metadata.security_headers.get("content_security_policy"):
        score += 0.1
    if metadata.security_headers.get("strict_transport_security"):
        score += 0.1
    if metadata.open_graph.get("title"):
        score += 0.05
    if metadata.twitter.get("card"):
        score += 0.05
    if metadata.schema_org:
        score += 0.1
    return max(0.0, min(1.0, score))


class WebPageValidator:
    """Validates a page on top of the link validator."""

    def __init__(
        self,
        link_validator: Optional[LinkValidator] = None,
        content_validator: Optional[ContentValidator] = None,
        fetcher: Optional[HttpFetcher] = None,
    ):
        self.fetcher = fetcher or (
            link_validator.fetcher if link_validator else HttpFetcher()
        )
        self.link_validator = link_validator or LinkValidator(self.fetcher)
        self.content_validator = content_validator or ContentValidator()

    async def validate(
        self,
        url: str,
        domain: Union[Domain, str, None] = None,
        options: Optional[WebValidationOptions] = None,
        link_options: Optional[LinkValidationOptions] = None,
        link_result: Optional[ValidationResult] = None,
    ) -> ValidationResult:
        """Validate a web page.

        Args:
            url: Page address
            domain: Knowledge domain, passed to the embedded content check
            options: Web validation options
            link_options: Options for the link stage and the page download
            link_result: Result of an earlier link validation of the same URL;
                skips a second link probe when given

        Returns:
            ValidationResult with WebMetadata and the link result attached

        Raises:
            ValidationError: If the URL is malformed
            NetworkError: If the page cannot be downloaded
            ScrapingError: If the page body is empty
        """
        options = options or WebValidationOptions()
        link_options = link_options or LinkValidationOptions()

        if link_result is None:
            link_result = await self.link_validator.validate(url, domain, link_options)

        if not link_result.is_valid:
            return ValidationResult(
                is_valid=False,
                score=0.0,
                issues=[
                    Issue(
                        type=IssueType.STANDARDS,
                        severity=IssueSeverity.ERROR,
                        message=(
                            "Link validation failed: "
                            f"{link_result.first_error_message()}"
                        ),
                    )
                ],
                metadata=WebMetadata(),
                link_result=link_result,
            )

        response = await self.fetcher.fetch(
            url,
            timeout_ms=link_options.timeout,
            max_redirects=link_options.max_redirects,
            max_size=link_options.max_response_size,
            user_agent=link_options.user_agent,
        )
        if not response.text.strip():
            raise ScrapingError("Page body is empty", url=url)
        soup = BeautifulSoup(response.text, "html.parser")
        metadata = extract_web_metadata(soup, response)
        metadata.main_text, metadata.main_content = extract_main_content(
            response.text
        )

        issues: List[Issue] = []
        content_type = response.content_type.lower()
        if content_type and not any(t in content_type for t in HTML_CONTENT_TYPES):
            issues.append(
                Issue(
                    type=IssueType.STANDARDS,
                    severity=IssueSeverity.ERROR,
                    message=f"Expected an HTML document, got '{content_type}'",
                )
            )

        if options.check_security:
            issues.extend(check_security(metadata))
        if options.check_accessibility:
            issues.extend(check_accessibility(soup))
        if options.check_seo:
            issues.extend(check_seo(soup, metadata))
        if options.check_performance:
            issues.extend(check_performance(metadata, options))
        if options.check_structure:
            issues.extend(check_structure(soup, options))

        if options.content_validation is not None:
            content_result = self.content_validator.validate(
                metadata.main_text, domain, options.content_validation
            )
            if not content_result.is_valid:
                issues.append(
                    Issue(
                        type=IssueType.STANDARDS,
                        severity=IssueSeverity.ERROR,
                        message=(
                            "Content validation failed: "
                            f"{content_result.first_error_message()}"
                        ),
                    )
                )

        score = calculate_web_score(issues, metadata)
        result = ValidationResult.from_issues(issues, score, metadata, link_result)
        logger.debug(
            f"Web page {url}: valid={result.is_valid}, score={result.score:.2f}, "
            f"issues={len(issues)}"
        )
        return result

    @staticmethod
    def summarize_issues(result: ValidationResult) -> Dict[str, int]:
        """Count issues per type, for progress reporting."""
        counts: Dict[str, int] = {}
        for issue in result.issues:
            counts[issue.type.value] = counts.get(issue.type.value, 0) + 1
        return counts
