# ---------------------------------------------------------
# URL Risk Heuristics
# ---------------------------------------------------------

"""
Explainable URL risk scoring for links found in QR payloads.

Public function:

    check_url_safety(url) -> SecurityAnalysis

Checks run in a fixed order. The first group (protocol, shortener, IP,
TLD, redirect params, subdomain depth) is aggregated into a risk level; the
second group (keywords, patterns, homographs) forces HIGH on its own. A
whitelisted HTTPS domain is lowered to LOW afterwards unless a check has
already made the result HIGH.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple
from urllib.parse import SplitResult, parse_qsl

import idna

from .models import RISK_ORDER, SecurityAnalysis
from .utils.urls import split_url

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# LISTS
# ---------------------------------------------------------

URL_SHORTENERS = {
    "bit.ly", "tinyurl.com", "t.co", "goo.gl", "ow.ly", "is.gd", "buff.ly",
    "adf.ly", "short.link", "tiny.cc", "lnkd.in", "rebrand.ly", "cutt.ly",
    "bl.ink", "clck.ru", "short.io", "v.gd", "x.co", "po.st", "soo.gd",
    "trib.al", "u.to", "qr.ae", "go2l.ink", "x.gd", "ift.tt", "amzn.to",
    "youtu.be", "fb.me", "ln.is", "db.tt", "qr.net", "owl.li", "adcrun.ch",
    "ity.im", "q.gs", "viid.me", "bc.vc", "twitthis.com", "u.bb", "yourls.org",
    "prettylinkpro.com", "scrnch.me", "filoops.info", "vzturl.com",
    "link.zip", "short.gy", "tiny.one", "rb.gy", "chilp.it", "short.cm",
}

SUSPICIOUS_TLDS = {
    "tk", "ml", "ga", "cf", "click", "download", "zip", "review", "country",
    "science", "work", "party", "gq", "men", "date", "racing", "loan",
    "stream", "cricket", "accountant", "faith", "win", "bid", "trade",
    "webcam", "top", "kim", "pw", "space", "website", "online", "site",
    "tech", "club", "info", "biz", "mobi", "name", "pro", "tel", "travel",
    "xxx", "adult", "porn", "sex", "casino", "bet", "poker", "game",
}

SAFE_DOMAINS = {
    "google.com", "youtube.com", "facebook.com", "twitter.com", "instagram.com",
    "linkedin.com", "github.com", "stackoverflow.com", "wikipedia.org",
    "amazon.com", "microsoft.com", "apple.com", "netflix.com", "reddit.com",
    "discord.com", "zoom.us", "dropbox.com", "spotify.com", "twitch.tv",
    "paypal.com", "ebay.com", "adobe.com", "salesforce.com", "oracle.com",
    "ibm.com", "intel.com", "nvidia.com", "amd.com", "hp.com", "dell.com",
    "mozilla.org", "cloudflare.com", "aws.amazon.com", "azure.microsoft.com",
    "cloud.google.com", "heroku.com", "vercel.com", "netlify.com",
    "firebase.google.com",
}

REDIRECT_PARAMS = {
    "redirect", "url", "next", "return", "returnUrl", "continue", "goto",
    "target", "destination", "forward", "link", "ref", "referer", "referrer",
    "callback", "success", "failure", "error", "exit", "out", "external",
    "redir", "redirect_uri", "return_to", "back", "from", "source", "origin",
}

SUSPICIOUS_KEYWORDS = (
    "phishing", "scam", "fraud", "fake", "malware", "virus", "trojan",
    "ransomware", "spam", "hack", "crack", "warez", "keygen", "serial",
    "patch", "loader", "activator", "bypass", "exploit", "payload",
    "backdoor", "rootkit", "botnet", "ddos", "attack", "breach",
)

SUSPICIOUS_PATTERNS = (
    re.compile(r"[0-9]{1,3}-[0-9]{1,3}-[0-9]{1,3}-[0-9]{1,3}"),  # dashed IP in a name
    re.compile(r"[a-z0-9]{20,}"),  # long random run
    re.compile(r"(.)\1{4,}"),  # 5+ repeated characters
    re.compile(r"[0-9]{10,}"),
    re.compile(r"[a-z]-[a-z]-[a-z]"),
)

MAX_HOSTNAME_LABELS = 4
HIGH_RISK_WARNING_COUNT = 3

IPV4_REGEX = re.compile(r"(?:[0-9]{1,3}\.){3}[0-9]{1,3}")
IPV6_REGEX = re.compile(r"(?:[0-9a-f]{0,4}:){2,7}[0-9a-f]{0,4}", re.IGNORECASE)


# ---------------------------------------------------------
# HOMOGLYPHS
# ---------------------------------------------------------

SCRIPT_RANGES = {
    "latin": re.compile(r"[a-zA-Z]"),
    "cyrillic": re.compile("[\u0400-\u04FF]"),
    "greek": re.compile("[\u0370-\u03FF]"),
    "arabic": re.compile("[\u0600-\u06FF]"),
}

HOMOGLYPH_CHARS = (
    "\u043E",  # Cyrillic o
    "\u0430",  # Cyrillic a
    "\u0440",  # Cyrillic p
    "\u0435",  # Cyrillic e
    "\u043C",  # Cyrillic m
    "\u0445",  # Cyrillic x
    "\u0441",  # Cyrillic c
    "\u03BF",  # Greek omicron
    "\u03B1",  # Greek alpha
)


def unicode_hostname(host: str) -> str:
    """Decode punycode labels so script checks see what the user sees."""
    if "xn--" not in host:
        return host
    try:
        return idna.decode(host)
    except (idna.IDNAError, UnicodeError):
        return host


def detect_homograph(host: str) -> bool:
    host = unicode_hostname(host)
    scripts = sum(1 for regex in SCRIPT_RANGES.values() if regex.search(host))
    if scripts > 1:
        return True
    return any(ch in host for ch in HOMOGLYPH_CHARS)


# ---------------------------------------------------------
# HELPERS
# ---------------------------------------------------------

def _matches_domain(host: str, domains) -> bool:
    return any(host == d or host.endswith("." + d) for d in domains)


def is_url_shortener(host: str) -> bool:
    return _matches_domain(host, URL_SHORTENERS)


def is_safe_domain(host: str) -> bool:
    return _matches_domain(host.lower(), SAFE_DOMAINS)


def is_ip_address(host: str) -> bool:
    bare = host.strip("[]")
    return bool(IPV4_REGEX.fullmatch(host) or IPV6_REGEX.fullmatch(bare))


def has_suspicious_tld(host: str) -> bool:
    return host.split(".")[-1].lower() in SUSPICIOUS_TLDS


def has_redirect_parameters(query: str) -> bool:
    names = {name for name, _ in parse_qsl(query, keep_blank_values=True)}
    return bool(names & REDIRECT_PARAMS)


def has_excessive_subdomains(host: str) -> bool:
    return len(host.split(".")) > MAX_HOSTNAME_LABELS


def has_suspicious_keywords(url: str) -> bool:
    lower = url.lower()
    return any(kw in lower for kw in SUSPICIOUS_KEYWORDS)


def has_suspicious_patterns(url: str) -> bool:
    return any(p.search(url) for p in SUSPICIOUS_PATTERNS)


# ---------------------------------------------------------
# CHECKS
# ---------------------------------------------------------

@dataclass
class _Target:
    url: str
    parts: SplitResult
    host: str
    scheme: str


# (warning, recommendation, risk level) or None
Finding = Optional[Tuple[str, str, str]]


def _check_protocol(t: _Target) -> Finding:
    if t.scheme == "http":
        return (
            "This URL does not use HTTPS encryption",
            "Look for an HTTPS version of this site",
            "medium",
        )
    if t.scheme != "https":
        return (
            "URL uses an unsupported or potentially unsafe protocol",
            "Use HTTPS URLs when possible for better security",
            "medium",
        )
    return None


def _check_shortener(t: _Target) -> Finding:
    if is_url_shortener(t.host):
        return (
            "This is a shortened URL - the actual destination is hidden",
            "Be cautious with shortened URLs from unknown sources",
            "medium",
        )
    return None


def _check_ip(t: _Target) -> Finding:
    if is_ip_address(t.host):
        return (
            "URL uses an IP address instead of a domain name",
            "Legitimate websites typically use domain names, not IP addresses",
            "high",
        )
    return None


def _check_tld(t: _Target) -> Finding:
    if has_suspicious_tld(t.host):
        return (
            "URL uses a domain extension commonly associated with suspicious sites",
            "Exercise extra caution with this domain extension",
            "medium",
        )
    return None


def _check_redirect(t: _Target) -> Finding:
    if has_redirect_parameters(t.parts.query):
        return (
            "URL contains parameters that might redirect to another site",
            "Check where this URL actually leads before clicking",
            "medium",
        )
    return None


def _check_subdomains(t: _Target) -> Finding:
    if has_excessive_subdomains(t.host):
        return (
            "URL has an unusually complex subdomain structure",
            "Complex subdomains can be used to deceive users",
            "medium",
        )
    return None


def _check_keywords(t: _Target) -> Finding:
    if has_suspicious_keywords(t.url):
        return (
            "URL contains suspicious keywords that may indicate malicious content",
            "Be extremely cautious - this URL may be dangerous",
            "high",
        )
    return None


def _check_patterns(t: _Target) -> Finding:
    if has_suspicious_patterns(t.url):
        return (
            "URL contains suspicious patterns commonly used in malicious links",
            "This URL structure is commonly associated with threats",
            "high",
        )
    return None


def _check_homograph(t: _Target) -> Finding:
    if detect_homograph(t.host):
        return (
            "URL may use lookalike characters to impersonate legitimate sites",
            "Check carefully - this domain may be impersonating a trusted site",
            "high",
        )
    return None


Check = Callable[[_Target], Finding]

STRUCTURE_CHECKS: Tuple[Tuple[str, Check], ...] = (
    ("protocol", _check_protocol),
    ("shortener", _check_shortener),
    ("ip_address", _check_ip),
    ("tld", _check_tld),
    ("redirect_params", _check_redirect),
    ("subdomains", _check_subdomains),
)

CONTENT_CHECKS: Tuple[Tuple[str, Check], ...] = (
    ("keywords", _check_keywords),
    ("patterns", _check_patterns),
    ("homograph", _check_homograph),
)


@dataclass
class _Verdict:
    risk_level: str = "low"
    is_safe: bool = True
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def escalate(self, level: str) -> None:
        if RISK_ORDER[level] > RISK_ORDER[self.risk_level]:
            self.risk_level = level
        self.is_safe = False

    def run(self, checks: Tuple[Tuple[str, Check], ...], target: _Target) -> None:
        for name, check in checks:
            try:
                finding = check(target)
            except Exception as exc:
                logger.warning(
                    json.dumps({"event": "url_check_failed", "check": name, "error": str(exc)})
                )
                continue
            if finding is None:
                continue
            warning, recommendation, level = finding
            self.warnings.append(warning)
            self.recommendations.append(recommendation)
            self.escalate(level)

    def freeze(self) -> SecurityAnalysis:
        return SecurityAnalysis(
            is_safe=self.is_safe,
            risk_level=self.risk_level,
            warnings=tuple(self.warnings),
            recommendations=tuple(self.recommendations),
        )


def _high_risk(warning: str, recommendation: str) -> SecurityAnalysis:
    return SecurityAnalysis(
        is_safe=False,
        risk_level="high",
        warnings=(warning,),
        recommendations=(recommendation,),
    )


# ---------------------------------------------------------
# MAIN ENGINE
# ---------------------------------------------------------

def check_url_safety(url: Any) -> SecurityAnalysis:
    try:
        if not isinstance(url, str):
            logger.warning(json.dumps({"event": "url_invalid_input", "type": type(url).__name__}))
            return _high_risk("Invalid URL provided", "Please provide a valid URL")

        url = url.strip()
        if not url:
            return _high_risk("Empty URL provided", "Please provide a valid URL")

        try:
            parts = split_url(url)
        except ValueError as exc:
            logger.info(json.dumps({"event": "url_unparseable", "error": str(exc)}))
            return _high_risk(
                "Invalid URL format",
                "Please check that the URL is correctly formatted",
            )

        target = _Target(
            url=url,
            parts=parts,
            host=(parts.hostname or "").lower(),
            scheme=parts.scheme.lower(),
        )
        verdict = _Verdict()

        verdict.run(STRUCTURE_CHECKS, target)

        # -------------------------
        # Aggregate
        # -------------------------
        if not verdict.warnings:
            verdict.risk_level = "low"
            verdict.is_safe = target.scheme == "https"
        elif len(verdict.warnings) >= HIGH_RISK_WARNING_COUNT or verdict.risk_level == "high":
            verdict.risk_level = "high"
            verdict.is_safe = False
        else:
            verdict.risk_level = "medium"
            verdict.is_safe = False

        verdict.run(CONTENT_CHECKS, target)

        # -------------------------
        # Safe-domain override
        # -------------------------
        try:
            if (
                is_safe_domain(target.host)
                and target.scheme == "https"
                and verdict.risk_level != "high"
            ):
                verdict.is_safe = True
                verdict.risk_level = "low"
        except Exception as exc:
            logger.warning(
                json.dumps({"event": "url_check_failed", "check": "safe_domain", "error": str(exc)})
            )

        return verdict.freeze()

    except Exception as exc:
        logger.error(json.dumps({"event": "url_analysis_failed", "error": str(exc)}))
        return _high_risk(
            "Security analysis failed - treat with caution",
            "Unable to verify URL safety - proceed with extreme caution",
        )
