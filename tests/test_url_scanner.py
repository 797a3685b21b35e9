import pytest

from qrkit import url_scanner
from qrkit.models import RISK_ORDER
from qrkit.url_scanner import (
    check_url_safety,
    detect_homograph,
    has_redirect_parameters,
    is_ip_address,
    is_safe_domain,
    is_url_shortener,
)

NO_HTTPS = "This URL does not use HTTPS encryption"
IP_WARNING = "URL uses an IP address instead of a domain name"
TLD_WARNING = "URL uses a domain extension commonly associated with suspicious sites"
REDIRECT_WARNING = "URL contains parameters that might redirect to another site"


def test_https_has_no_protocol_warning():
    assert NO_HTTPS not in check_url_safety("https://example.com").warnings


def test_http_is_medium():
    result = check_url_safety("http://example.com")
    assert NO_HTTPS in result.warnings
    assert result.risk_level == "medium"
    assert result.is_safe is False


def test_other_protocols_are_medium():
    result = check_url_safety("ftp://files.example.com")
    assert result.warnings == ("URL uses an unsupported or potentially unsafe protocol",)
    assert result.risk_level == "medium"


def test_shortener():
    result = check_url_safety("https://bit.ly/test")
    assert "This is a shortened URL - the actual destination is hidden" in result.warnings
    assert result.risk_level == "medium"


def test_http_ip_address_is_high():
    result = check_url_safety("http://192.168.1.1")
    assert NO_HTTPS in result.warnings
    assert IP_WARNING in result.warnings
    assert result.risk_level == "high"
    assert result.is_safe is False


def test_ip_forced_high_is_not_lowered_by_later_checks():
    result = check_url_safety("https://10.0.0.1/login")
    assert result.warnings == (IP_WARNING,)
    assert result.risk_level == "high"


def test_safe_domain():
    result = check_url_safety("https://google.com")
    assert result.is_safe is True
    assert result.risk_level == "low"
    assert result.warnings == ()


def test_safe_domain_subdomain_with_redirect_is_lowered():
    result = check_url_safety("https://mail.google.com/?continue=x")
    assert REDIRECT_WARNING in result.warnings
    assert result.risk_level == "low"
    assert result.is_safe is True


def test_safe_domain_over_http_is_not_lowered():
    assert check_url_safety("http://google.com").risk_level == "medium"


def test_safe_domain_with_dangerous_keyword_stays_high():
    result = check_url_safety("https://google.com/malware")
    assert result.risk_level == "high"
    assert result.is_safe is False


def test_unknown_clean_https_domain_is_low_and_safe():
    result = check_url_safety("https://example.com")
    assert result.risk_level == "low"
    assert result.is_safe is True
    assert result.warnings == ()
    assert result.recommendations == ()


def test_suspicious_tld():
    result = check_url_safety("https://example.tk")
    assert TLD_WARNING in result.warnings
    assert result.risk_level == "medium"


def test_redirect_parameter():
    result = check_url_safety("https://example.com?redirect=https://malicious.com")
    assert REDIRECT_WARNING in result.warnings
    assert result.risk_level == "medium"


def test_tld_and_redirect_are_medium():
    result = check_url_safety("https://example.tk?redirect=http://bad.com")
    assert result.warnings == (TLD_WARNING, REDIRECT_WARNING)
    assert result.risk_level == "medium"
    assert result.is_safe is False


def test_three_medium_warnings_are_high():
    result = check_url_safety("http://bit.tk/?next=x")
    assert len(result.warnings) == 3
    assert result.risk_level == "high"


def test_excessive_subdomains():
    result = check_url_safety("https://a.b.c.d.e.example.com")
    assert "URL has an unusually complex subdomain structure" in result.warnings
    assert result.risk_level == "medium"


def test_keywords_and_patterns_force_high():
    assert check_url_safety("https://example.com/free-hack").risk_level == "high"
    assert check_url_safety("https://example.com/?id=12345678901").risk_level == "high"
    assert check_url_safety("https://aaaaaa.example.com").risk_level == "high"


def test_homograph_punycode_host_is_high():
    # xn--pple-43d.com decodes to a Cyrillic "a" followed by Latin "pple"
    result = check_url_safety("https://xn--pple-43d.com")
    assert "URL may use lookalike characters to impersonate legitimate sites" in result.warnings
    assert result.risk_level == "high"


def test_detect_homograph():
    assert detect_homograph("\u0430pple.com")
    assert not detect_homograph("apple.com")


@pytest.mark.parametrize(
    "url, warning",
    [
        ("not-a-url", "Invalid URL format"),
        ("", "Empty URL provided"),
        ("   ", "Empty URL provided"),
        (None, "Invalid URL provided"),
        (42, "Invalid URL provided"),
        ("https://", "Invalid URL format"),
        ("http://example.com:99999", "Invalid URL format"),
    ],
)
def test_invalid_input_is_high(url, warning):
    result = check_url_safety(url)
    assert result.is_safe is False
    assert result.risk_level == "high"
    assert result.warnings == (warning,)
    assert len(result.recommendations) == 1


def test_warnings_and_recommendations_in_lockstep():
    result = check_url_safety("http://bit.tk/?next=x")
    assert len(result.warnings) == len(result.recommendations)


def test_idempotent():
    url = "https://example.tk?redirect=http://bad.com"
    assert check_url_safety(url) == check_url_safety(url)


def test_failing_check_is_skipped(monkeypatch, caplog):
    def boom(target):
        raise RuntimeError("check exploded")

    checks = tuple((name, boom if name == "tld" else fn) for name, fn in url_scanner.STRUCTURE_CHECKS)
    monkeypatch.setattr(url_scanner, "STRUCTURE_CHECKS", checks)

    result = check_url_safety("https://example.tk")
    assert result.risk_level == "low"
    assert "url_check_failed" in caplog.text


def test_more_checks_never_lower_risk():
    pairs = [
        ("https://example.com", "http://example.com"),
        ("http://example.com", "http://192.168.1.1"),
        ("https://example.tk", "https://example.tk?redirect=x"),
        ("https://example.tk?redirect=x", "http://example.tk?redirect=x"),
        ("https://example.com", "https://example.com/phishing"),
    ]
    for fewer, more in pairs:
        assert RISK_ORDER[check_url_safety(more).risk_level] >= RISK_ORDER[check_url_safety(fewer).risk_level]


def test_helpers():
    assert is_url_shortener("bit.ly")
    assert is_url_shortener("go.bit.ly")
    assert not is_url_shortener("notbit.ly")
    assert is_safe_domain("Docs.GitHub.com")
    assert is_ip_address("10.0.0.1")
    assert is_ip_address("[2001:db8::1]")
    assert not is_ip_address("example.com")
    assert has_redirect_parameters("returnUrl=")
    assert not has_redirect_parameters("returnurl=x")
