import asyncio
import logging
import time
from typing import Dict, List, Optional

from . import dns_utils
from .arc import enhance_arc_chain, parse_arc_chain
from .config import Settings
from .extractors import (
    parse_legacy_dkim,
    parse_legacy_spf,
    parse_mechanism_token,
    split_authentication_results,
)
from .message import ParsedMessage
from .models import ARCOutcome, AuthenticationBundle, DKIMRecord, Mechanism, MechanismScores, PTRRecord, Report
from .scoring import (
    score_aligned_from,
    score_bimi,
    score_dkim,
    score_dkim_records,
    score_dmarc,
    score_iprev,
    score_ptr,
    score_spf,
    score_x_google_dkim,
)

logger = logging.getLogger(__name__)

# mechanisms where only the first token found is kept
_SINGLE = {
    Mechanism.SPF.value: "spf",
    Mechanism.DMARC.value: "dmarc",
    Mechanism.BIMI.value: "bimi",
    Mechanism.IPREV.value: "iprev",
    Mechanism.ARC.value: "arc",
    Mechanism.ALIGNED_FROM.value: "aligned_from",
    Mechanism.X_GOOGLE_DKIM.value: "x_google_dkim",
}


def _collect_header(header: str, bundle: AuthenticationBundle) -> None:
    for token in split_authentication_results(header):
        outcome = parse_mechanism_token(token)
        if outcome is None:
            continue
        if isinstance(outcome, ARCOutcome):
            if bundle.arc is None:
                bundle.arc = outcome
            continue
        key = outcome.mechanism.value
        if key == Mechanism.DKIM.value:
            bundle.dkim.append(outcome)
        elif getattr(bundle, _SINGLE[key]) is None:
            setattr(bundle, _SINGLE[key], outcome)


def analyze_authentication(message: ParsedMessage, authserv_id: Optional[str] = None) -> AuthenticationBundle:
    """Gather every authentication outcome the message headers carry."""
    bundle = AuthenticationBundle()

    for header in message.get_authentication_results(authserv_id):
        _collect_header(header, bundle)

    # older MTAs only stamp Received-SPF
    if bundle.spf is None:
        bundle.spf = parse_legacy_spf(message)

    if not bundle.dkim:
        bundle.dkim = parse_legacy_dkim(message)

    if bundle.arc is None:
        bundle.arc = parse_arc_chain(message)
    else:
        enhance_arc_chain(message, bundle.arc)

    return bundle


async def check_dkim_records(bundle: AuthenticationBundle, resolver: dns_utils.Resolver,
                             timeout: float = dns_utils.DNS_TIMEOUT) -> List[DKIMRecord]:
    """Check the key record of every distinct (domain, selector) the DKIM outcomes claim."""
    pairs = []
    for outcome in bundle.dkim:
        if outcome.domain and outcome.selector and (outcome.domain, outcome.selector) not in pairs:
            pairs.append((outcome.domain, outcome.selector))
    checks = [dns_utils.check_dkim_record(resolver, d, s, timeout) for d, s in pairs]
    return list(await asyncio.gather(*checks))


def _claimed_domains(bundle: AuthenticationBundle) -> List[str]:
    domains: List[str] = []
    candidates = [bundle.spf] + list(bundle.dkim) + [bundle.dmarc]
    for outcome in candidates:
        if outcome is None or not outcome.domain:
            continue
        domain = dns_utils.normalize_domain(outcome.domain)
        if domain not in domains:
            domains.append(domain)
    return domains


async def check_dnssec(bundle: AuthenticationBundle, resolver: dns_utils.Resolver,
                       timeout: float = dns_utils.DNS_TIMEOUT) -> Dict[str, Optional[bool]]:
    """DNSSEC status per claimed domain; None when it could not be determined."""
    status: Dict[str, Optional[bool]] = {}
    for domain in _claimed_domains(bundle):
        try:
            status[domain] = await dns_utils.is_dnssec_authenticated(resolver, domain, timeout)
        except dns_utils.LOOKUP_ERRORS as e:
            logger.warning("DNSSEC check for %s failed: %s", domain, e)
            status[domain] = None
    return status


def score_bundle(bundle: AuthenticationBundle, dkim_records: List[DKIMRecord],
                 ptr_record: Optional[PTRRecord] = None) -> MechanismScores:
    return MechanismScores(
        spf=score_spf(bundle.spf),
        dkim=score_dkim(bundle.dkim),
        dkim_records=score_dkim_records(dkim_records),
        dmarc=score_dmarc(bundle.dmarc),
        iprev=score_iprev(bundle.iprev),
        aligned_from=score_aligned_from(bundle.aligned_from),
        bimi=score_bimi(bundle.bimi),
        x_google_dkim=score_x_google_dkim(bundle.x_google_dkim),
        ptr=score_ptr(ptr_record),
    )


async def generate_report(message: ParsedMessage, resolver: Optional[dns_utils.Resolver] = None,
                          settings: Optional[Settings] = None, check_dns: bool = True) -> Dict:
    settings = settings or Settings()
    t0 = time.time()

    bundle = analyze_authentication(message, settings.authserv_id)

    dkim_records: List[DKIMRecord] = []
    dnssec: Dict[str, Optional[bool]] = {}
    ptr_record: Optional[PTRRecord] = None
    if check_dns:
        if resolver is None:
            resolver = dns_utils.DnsPythonResolver(settings.nameservers)
        dkim_records = await check_dkim_records(bundle, resolver, settings.dns_timeout)
        if bundle.iprev is not None and bundle.iprev.ip:
            ptr_record = await dns_utils.check_ptr_and_forward(resolver, bundle.iprev.ip, settings.dns_timeout)
        if settings.check_dnssec:
            dnssec = await check_dnssec(bundle, resolver, settings.dns_timeout)

    report = Report(
        message_id=message.get("Message-ID"),
        time_utc=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        authentication=bundle,
        dkim_records=dkim_records,
        ptr_record=ptr_record,
        dnssec=dnssec,
        scores=score_bundle(bundle, dkim_records, ptr_record),
        elapsed_seconds=round(time.time() - t0, 2),
    )
    return report.model_dump(mode="json")


def _outcome_line(label: str, outcome: Optional[Dict]) -> str:
    if not outcome:
        return f"  - {label}: not present"
    line = f"  - {label}: {outcome['result']}"
    if outcome.get("domain"):
        line += f" (domain: {outcome['domain']})"
    return line


def human_report(result: Dict) -> str:
    lines = []
    d = result
    auth = d["authentication"]
    lines.append(f"Email authentication report for message: {d.get('message_id') or '(no Message-ID)'}")
    lines.append(f"Checked at (UTC): {d['time_utc']}")
    lines.append("-" * 60)
    lines.append("Authentication results:")
    lines.append(_outcome_line("SPF", auth.get("spf")))
    if not auth["dkim"]:
        lines.append("  - DKIM: no signature")
    for sig in auth["dkim"]:
        line = _outcome_line("DKIM", sig)
        if sig.get("selector"):
            line += f" selector {sig['selector']}"
        lines.append(line)
    lines.append(_outcome_line("DMARC", auth.get("dmarc")))
    lines.append(_outcome_line("iprev", auth.get("iprev")))
    lines.append(_outcome_line("Aligned-From", auth.get("aligned_from")))
    lines.append(_outcome_line("BIMI", auth.get("bimi")))
    lines.append(_outcome_line("X-Google-DKIM", auth.get("x_google_dkim")))
    arc = auth.get("arc")
    if not arc:
        lines.append("  - ARC: not present")
    else:
        lines.append(f"  - ARC: {arc['result']} ({arc['details']})")
    lines.append("")
    lines.append("DKIM records:")
    if not d["dkim_records"]:
        lines.append("  - No DKIM record checked.")
    for rec in d["dkim_records"]:
        state = "valid" if rec["valid"] else f"invalid: {rec['error']}"
        lines.append(f"  - {rec['selector']}._domainkey.{rec['domain']}: {state}")
        if rec.get("record"):
            lines.append(f"    - raw TXT (first 200 chars): {rec['record'][:200]}")
    ptr = d.get("ptr_record")
    if ptr:
        lines.append("")
        lines.append(f"Reverse DNS for {ptr['ip']}:")
        if ptr.get("error"):
            lines.append(f"  - {ptr['error']}")
        else:
            lines.append(f"  - PTR: {', '.join(ptr['ptr_names'])}")
            state = "yes" if ptr["forward_confirmed"] else "no"
            lines.append(f"  - forward-confirmed: {state}")
    if d["dnssec"]:
        lines.append("")
        lines.append("DNSSEC:")
        for domain, ok in d["dnssec"].items():
            state = "unknown" if ok is None else ("signed" if ok else "not signed")
            lines.append(f"  - {domain}: {state}")
    lines.append("")
    lines.append("Scores (0-100):")
    for k, v in d["scores"].items():
        lines.append(f"  - {k}: {v}")
    lines.append("-" * 60)
    lines.append(f"Elapsed time: {d.get('elapsed_seconds', '?')}s")
    return "\n".join(lines)
