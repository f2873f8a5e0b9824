"""Extract structured outcomes from Authentication-Results style tokens.

Every parser takes a single mechanism token, e.g.
``dkim=pass header.d=example.com header.s=selector1``, as produced by
:func:`split_authentication_results`. Parsers never raise on unexpected
input: whatever cannot be found stays unset.
"""

import re
from typing import Callable, Dict, List, Optional, Union

from .message import ParsedMessage, split_fields
from .models import ARCOutcome, AuthOutcome, AuthResultCode, Mechanism

# a tag only counts at the start of the token or after whitespace/semicolon,
# so "header.d=" never matches inside "bad="
_START = r"(?:^|[\s;(])"

SPF_MAILFROM_RE = re.compile(_START + r"smtp\.mailfrom=([^\s;]+)")
DKIM_DOMAIN_RE = re.compile(_START + r"(?:header\.)?d=([^\s;]+)")
DKIM_SELECTOR_RE = re.compile(_START + r"(?:header\.)?s=([^\s;]+)")
DMARC_DOMAIN_RE = re.compile(_START + r"header\.from=([^\s;]+)")
BIMI_SELECTOR_RE = re.compile(_START + r"(?:header\.)?selector=([^\s;]+)")
IPREV_IP_RE = re.compile(_START + r"(?:smtp\.)?remote-ip=([^\s;()]+)")
IPREV_HOSTNAME_RE = re.compile(r"\(([^)]+)\)")
LEGACY_SPF_SENDER_RE = re.compile(r"(?:envelope-from|sender)=\"?([^\s;\"]+)")

LEGACY_DKIM_DETAILS = "DKIM signature present (verification status unknown)"

_result_patterns: Dict[str, "re.Pattern[str]"] = {}


def _result_code(key: str, token: str) -> str:
    pattern = _result_patterns.get(key)
    if pattern is None:
        pattern = re.compile(_START + re.escape(key) + r"=(\w+)", re.I)
        _result_patterns[key] = pattern
    m = pattern.search(token)
    if not m:
        return AuthResultCode.NONE.value
    return m.group(1).lower()


def _search(pattern: "re.Pattern[str]", text: str) -> Optional[str]:
    m = pattern.search(text)
    return m.group(1) if m else None


def domain_of(address: Optional[str]) -> Optional[str]:
    """Return the part after the first ``@``, or None."""
    if not address or "@" not in address:
        return None
    domain = address.split("@", 1)[1]
    return domain or None


def parse_spf_token(token: str) -> AuthOutcome:
    return AuthOutcome(
        mechanism=Mechanism.SPF,
        result=_result_code("spf", token),
        domain=domain_of(_search(SPF_MAILFROM_RE, token)),
        details=token.removeprefix("spf="),
    )


def parse_dkim_token(token: str) -> AuthOutcome:
    return AuthOutcome(
        mechanism=Mechanism.DKIM,
        result=_result_code("dkim", token),
        domain=_search(DKIM_DOMAIN_RE, token),
        selector=_search(DKIM_SELECTOR_RE, token),
        details=token.removeprefix("dkim="),
    )


def parse_dmarc_token(token: str) -> AuthOutcome:
    return AuthOutcome(
        mechanism=Mechanism.DMARC,
        result=_result_code("dmarc", token),
        domain=_search(DMARC_DOMAIN_RE, token),
        details=token.removeprefix("dmarc="),
    )


def parse_bimi_token(token: str) -> AuthOutcome:
    return AuthOutcome(
        mechanism=Mechanism.BIMI,
        result=_result_code("bimi", token),
        domain=_search(DKIM_DOMAIN_RE, token),
        selector=_search(BIMI_SELECTOR_RE, token),
        details=token.removeprefix("bimi="),
    )


def parse_iprev_token(token: str) -> AuthOutcome:
    return AuthOutcome(
        mechanism=Mechanism.IPREV,
        result=_result_code("iprev", token),
        ip=_search(IPREV_IP_RE, token),
        hostname=_search(IPREV_HOSTNAME_RE, token),
        details=token.removeprefix("iprev="),
    )


def parse_arc_token(token: str) -> ARCOutcome:
    # chain_length/chain_valid are left for enhance_arc_chain
    return ARCOutcome(
        result=_result_code("arc", token),
        details=token.removeprefix("arc="),
    )


def parse_aligned_from_token(token: str) -> AuthOutcome:
    return AuthOutcome(
        mechanism=Mechanism.ALIGNED_FROM,
        result=_result_code("x-aligned-from", token),
        details=token,
    )


def parse_x_google_dkim_token(token: str) -> AuthOutcome:
    """Google's own DKIM check, e.g.
    ``x-google-dkim=pass (2048-bit rsa key) header.d=1e100.net header.i=@1e100.net``.
    """
    return AuthOutcome(
        mechanism=Mechanism.X_GOOGLE_DKIM,
        result=_result_code("x-google-dkim", token),
        domain=_search(DKIM_DOMAIN_RE, token),
        selector=_search(DKIM_SELECTOR_RE, token),
        details=token.removeprefix("x-google-dkim="),
    )


TOKEN_PARSERS: Dict[str, Callable[[str], Union[AuthOutcome, ARCOutcome]]] = {
    Mechanism.SPF.value: parse_spf_token,
    Mechanism.DKIM.value: parse_dkim_token,
    Mechanism.X_GOOGLE_DKIM.value: parse_x_google_dkim_token,
    Mechanism.DMARC.value: parse_dmarc_token,
    Mechanism.BIMI.value: parse_bimi_token,
    Mechanism.IPREV.value: parse_iprev_token,
    Mechanism.ARC.value: parse_arc_token,
    Mechanism.ALIGNED_FROM.value: parse_aligned_from_token,
}


def mechanism_of(token: str) -> Optional[str]:
    """Return the lower-cased method name of a token (text before ``=``)."""
    name, sep, _ = token.partition("=")
    if not sep:
        return None
    return name.strip().lower()


def parse_mechanism_token(token: str) -> Optional[Union[AuthOutcome, ARCOutcome]]:
    """Parse a token with the parser matching its method name.

    Returns None for methods this package does not know about.
    """
    parser = TOKEN_PARSERS.get(mechanism_of(token) or "")
    if parser is None:
        return None
    return parser(token)


def split_authentication_results(header: str) -> List[str]:
    """Split an Authentication-Results value into mechanism tokens.

    The leading authserv-id is dropped; a header without any ``;`` carries
    no results at all.
    """
    parts = split_fields(header)
    if len(parts) < 2:
        return []
    return [p.strip() for p in parts[1:] if p.strip()]


def parse_legacy_spf(message: ParsedMessage) -> Optional[AuthOutcome]:
    """Build an SPF outcome from the first Received-SPF header."""
    received_spf = message.get("Received-SPF")
    if not received_spf or not received_spf.strip():
        return None

    fields = received_spf.split()
    result = fields[0].lower() if fields else AuthResultCode.NONE.value

    return AuthOutcome(
        mechanism=Mechanism.SPF,
        result=result,
        domain=domain_of(_search(LEGACY_SPF_SENDER_RE, received_spf)),
        details=received_spf,
    )


def parse_legacy_dkim(message: ParsedMessage) -> List[AuthOutcome]:
    """One ``none`` outcome per DKIM-Signature header.

    A signature alone says nothing about whether it verified, so these
    never count as passing.
    """
    outcomes = []
    for header in message.get_all("DKIM-Signature"):
        outcomes.append(AuthOutcome(
            mechanism=Mechanism.DKIM,
            result=AuthResultCode.NONE.value,
            domain=_search(DKIM_DOMAIN_RE, header),
            selector=_search(DKIM_SELECTOR_RE, header),
            details=LEGACY_DKIM_DETAILS,
        ))
    return outcomes
