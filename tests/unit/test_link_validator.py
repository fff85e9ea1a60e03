"""Unit tests for the link validator."""

import pytest

from groundsource.app_utils.config_schema import LinkValidationOptions
from groundsource.core.errors import (
    NetworkError,
    RateLimitError,
    RedirectLimitError,
    ValidationError,
)
from groundsource.core.source import Issue, IssueSeverity, IssueType, LinkMetadata
from groundsource.scrapers.url_fetcher import FetchResponse
from groundsource.validators.link_validator import (
    LinkValidator,
    calculate_link_score,
    domain_matches,
    is_canonical,
    normalize_url,
)
from conftest import FakeFetcher

URL = "https://example.com/article"


def ok_response(url=URL, headers=None, redirect_chain=None, elapsed_ms=100.0):
    return FetchResponse(
        url=url,
        final_url=url,
        status=200,
        headers=headers or {"content-type": "text/html"},
        redirect_chain=redirect_chain or [],
        elapsed_ms=elapsed_ms,
    )


def status_response(status, url=URL):
    return FetchResponse(url=url, final_url=url, status=status)


@pytest.mark.unit
class TestUrlHelpers:
    """Tests for URL normalization and matching helpers."""

    def test_normalize_url(self):
        assert (
            normalize_url("HTTPS://Example.COM:443/Path?q=1#frag")
            == "https://example.com/Path?q=1"
        )
        assert normalize_url("http://example.com:8080") == "http://example.com:8080/"

    def test_domain_matches(self):
        assert domain_matches("docs.example.com", "example.com")
        assert domain_matches("example.com", ".example.com")
        assert not domain_matches("notexample.com", "example.com")

    def test_canonical_from_link_header(self):
        response = ok_response(
            headers={"link": '<https://example.com/other>; rel="canonical"'}
        )
        assert is_canonical(URL, response) is False
        assert is_canonical("https://example.com/other", response) is True
        assert is_canonical(URL, ok_response()) is True

    def test_score_penalties_and_bonuses(self):
        metadata = LinkMetadata(url=URL, redirect_count=2, response_time=2500)
        issues = [
            _issue(IssueSeverity.WARNING),
            _issue(IssueSeverity.INFO),
        ]
        # 1 - 0.2 - 0.1 - 0.1 (slow) - 0.1 (redirects) + 0.1 + 0.1
        assert calculate_link_score(issues, metadata) == pytest.approx(0.7)


def _issue(severity):
    return Issue(type=IssueType.STATUS, severity=severity, message="x")


@pytest.mark.unit
@pytest.mark.asyncio
class TestLinkValidator:
    """Tests for LinkValidator.validate()."""

    async def test_valid_link(self):
        fetcher = FakeFetcher(
            {
                URL: ok_response(
                    headers={
                        "content-type": "text/html",
                        "content-length": "1234",
                        "last-modified": "Mon, 01 Jan 2024 00:00:00 GMT",
                    }
                )
            }
        )

        result = await LinkValidator(fetcher).validate(URL)

        assert result.is_valid is True
        assert result.score == 1.0
        assert result.metadata.status_code == 200
        assert result.metadata.content_length == 1234
        assert result.metadata.last_modified == "Mon, 01 Jan 2024 00:00:00 GMT"
        assert result.metadata.domain == "example.com"
        assert result.metadata.robots_allowed is True

    @pytest.mark.parametrize("url", ["", "not a url", "https://", "http://a.com:99999"])
    async def test_malformed_url_raises(self, url):
        with pytest.raises(ValidationError):
            await LinkValidator(FakeFetcher()).validate(url)

    async def test_disallowed_protocol(self):
        fetcher = FakeFetcher()
        result = await LinkValidator(fetcher).validate("ftp://example.com/file")

        assert result.is_valid is False
        assert result.issues[0].type == IssueType.PROTOCOL
        # No network traffic once the protocol is rejected
        assert fetcher.calls == []

    async def test_blacklisted_subdomain(self):
        options = LinkValidationOptions(blocked_domains=["spam.com"])
        result = await LinkValidator(FakeFetcher()).validate(
            "https://www.spam.com/page", options=options
        )

        assert result.is_valid is False
        assert "blacklisted" in result.issues[0].message

    async def test_whitelist(self):
        options = LinkValidationOptions(
            check_whitelist=True, allowed_domains=["trusted.org"]
        )
        fetcher = FakeFetcher({URL: ok_response()})

        result = await LinkValidator(fetcher).validate(URL, options=options)

        assert result.is_valid is False
        assert "not in whitelist" in result.issues[0].message

    @pytest.mark.parametrize("status", [404, 410, 500, 503])
    async def test_error_statuses_fail(self, status):
        fetcher = FakeFetcher({URL: status_response(status)})

        result = await LinkValidator(fetcher).validate(URL)

        assert result.is_valid is False
        assert result.errors[0].message == f"HTTP {status} error"

    async def test_broken_link_check_disabled(self):
        fetcher = FakeFetcher({URL: status_response(404)})
        options = LinkValidationOptions(check_broken_links=False)

        result = await LinkValidator(fetcher).validate(URL, options=options)

        assert result.is_valid is True
        assert result.warnings[0].code == "404"

    async def test_other_client_errors_warn(self):
        fetcher = FakeFetcher({URL: status_response(403)})

        result = await LinkValidator(fetcher).validate(URL)

        assert result.is_valid is True
        assert result.warnings[0].type == IssueType.STATUS

    async def test_redirects_reported(self):
        fetcher = FakeFetcher(
            {URL: ok_response(redirect_chain=["http://example.com/article"])}
        )

        result = await LinkValidator(fetcher).validate(URL)

        assert result.metadata.redirect_count == 1
        assert result.issues[0].type == IssueType.REDIRECT
        assert result.issues[0].severity == IssueSeverity.INFO

    async def test_redirect_limit_is_an_issue(self):
        fetcher = FakeFetcher({URL: RedirectLimitError("loop", url=URL, limit=5)})

        result = await LinkValidator(fetcher).validate(URL)

        assert result.is_valid is False
        assert result.errors[0].type == IssueType.REDIRECT

    @pytest.mark.parametrize(
        "error", [NetworkError("Connection refused"), RateLimitError("HTTP 429")]
    )
    async def test_network_errors_propagate(self, error):
        fetcher = FakeFetcher({URL: error})

        with pytest.raises(NetworkError):
            await LinkValidator(fetcher).validate(URL)

    async def test_robots_disallow_warns(self):
        fetcher = FakeFetcher(
            {
                "https://example.com/robots.txt": FetchResponse(
                    url="https://example.com/robots.txt",
                    final_url="https://example.com/robots.txt",
                    status=200,
                    text="User-agent: *\nDisallow: /article\n",
                ),
                URL: ok_response(),
            }
        )

        result = await LinkValidator(fetcher).validate(URL)

        assert result.is_valid is True
        assert result.metadata.robots_allowed is False
        assert result.warnings[0].type == IssueType.ROBOTS

    async def test_canonical_required(self):
        fetcher = FakeFetcher(
            {
                URL: ok_response(
                    headers={"link": '<https://example.com/canonical>; rel="canonical"'}
                )
            }
        )
        options = LinkValidationOptions(require_canonical=True)

        result = await LinkValidator(fetcher).validate(URL, options=options)

        assert result.metadata.is_canonical is False
        assert result.warnings[0].message == "URL is not canonical"
