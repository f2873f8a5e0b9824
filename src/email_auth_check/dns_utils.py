import asyncio
import logging
from typing import List, Optional, Protocol, Sequence, Tuple

import dns.asyncresolver
import dns.exception
import dns.flags
import dns.name
import dns.resolver
import dns.reversename

from .models import DKIMRecord, PTRRecord

logger = logging.getLogger(__name__)

# ---------- Configuration ----------
DNS_TIMEOUT = 5.0  # seconds
EDNS_PAYLOAD = 1232
# -----------------------------------

# errors that mean "the lookup did not produce an answer"
LOOKUP_ERRORS = (dns.exception.DNSException, asyncio.TimeoutError, OSError)


class Resolver(Protocol):
    """What the analysis needs from DNS.

    Any object with these coroutines will do: tests use an in-memory double,
    production uses :class:`DnsPythonResolver`. Implementations raise on
    lookup failure and own any retry policy.
    """

    async def lookup_txt(self, name: str, timeout: float) -> List[str]:
        ...

    async def lookup_mx(self, name: str, timeout: float) -> List[Tuple[int, str]]:
        ...

    async def lookup_ptr(self, addr: str, timeout: float) -> List[str]:
        ...

    async def lookup_host(self, host: str, timeout: float) -> List[str]:
        ...

    async def is_authenticated(self, domain: str, timeout: float) -> bool:
        ...


def normalize_domain(domain: str) -> str:
    """``Example.COM.`` and ``example.com`` are the same zone."""
    return domain.strip().rstrip(".").lower()


class DnsPythonResolver:
    """:class:`Resolver` backed by dnspython's async resolver.

    DNSSEC status is read from the AD flag, so the configured nameservers
    must be validating resolvers for :meth:`is_authenticated` to mean
    anything.
    """

    def __init__(self, nameservers: Optional[Sequence[str]] = None, resolver=None):
        if resolver is None:
            resolver = dns.asyncresolver.Resolver(configure=not nameservers)
            if nameservers:
                resolver.nameservers = list(nameservers)
            resolver.use_edns(0, dns.flags.DO, EDNS_PAYLOAD)
            resolver.flags = dns.flags.RD | dns.flags.AD
        self.resolver = resolver

    async def _resolve(self, name, rdtype: str, timeout: float, raise_on_no_answer: bool = True):
        qname = name if isinstance(name, dns.name.Name) else dns.name.from_text(name)
        return await self.resolver.resolve(
            qname, rdtype, raise_on_no_answer=raise_on_no_answer, lifetime=timeout
        )

    async def lookup_txt(self, name: str, timeout: float) -> List[str]:
        try:
            answers = await self._resolve(name, "TXT", timeout)
        except dns.resolver.NoAnswer:
            return []
        txts: List[str] = []
        for r in answers:
            # one TXT record may be split in several character-strings
            txts.append(b"".join(r.strings).decode("utf-8", errors="replace"))
        return txts

    async def lookup_mx(self, name: str, timeout: float) -> List[Tuple[int, str]]:
        try:
            answers = await self._resolve(name, "MX", timeout)
        except dns.resolver.NoAnswer:
            return []
        mxs = [(r.preference, r.exchange.to_text(omit_final_dot=True)) for r in answers]
        return sorted(mxs)

    async def lookup_ptr(self, addr: str, timeout: float) -> List[str]:
        arpa = dns.reversename.from_address(addr)
        try:
            answers = await self._resolve(arpa, "PTR", timeout)
        except dns.resolver.NoAnswer:
            return []
        return [r.target.to_text(omit_final_dot=True) for r in answers]

    async def lookup_host(self, host: str, timeout: float) -> List[str]:
        addrs: List[str] = []
        errors = []
        for rdtype in ("A", "AAAA"):
            try:
                answers = await self._resolve(host, rdtype, timeout)
            except dns.resolver.NoAnswer:
                continue
            except dns.exception.DNSException as e:
                errors.append(e)
                continue
            addrs.extend(r.address for r in answers)
        if len(errors) == 2:
            raise errors[0]
        return addrs

    async def is_authenticated(self, domain: str, timeout: float) -> bool:
        answer = await self._resolve(normalize_domain(domain) + ".", "DNSKEY", timeout,
                                     raise_on_no_answer=False)
        return bool(answer.response.flags & dns.flags.AD)


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def validate_dkim(record: str) -> bool:
    """Structural check of a DKIM key record (RFC 6376 tag list).

    A ``p=`` tag must be present; its value may be empty (revoked key).
    ``v=``, when present, must be exactly ``DKIM1``.
    """
    tags = {}
    for part in record.split(";"):
        if "=" not in part:
            continue
        name, value = part.split("=", 1)
        tags.setdefault(name.strip(), value.strip())
    if "p" not in tags:
        return False
    if "v" in tags and tags["v"] != "DKIM1":
        return False
    return True


async def check_dkim_record(resolver: Resolver, domain: str, selector: str,
                            timeout: float = DNS_TIMEOUT) -> DKIMRecord:
    """Look up ``<selector>._domainkey.<domain>`` and validate what comes back.

    Never raises for DNS trouble: failures end up in ``DKIMRecord.error``.
    """
    name = f"{selector}._domainkey.{domain}"
    try:
        txts = await asyncio.wait_for(resolver.lookup_txt(name, timeout), timeout)
    except LOOKUP_ERRORS as e:
        logger.warning("DKIM lookup for %s failed: %s", name, _describe(e))
        return DKIMRecord(selector=selector, domain=domain, valid=False,
                          error=f"Failed to lookup DKIM record: {_describe(e)}")

    if not txts:
        return DKIMRecord(selector=selector, domain=domain, valid=False,
                          error="No DKIM record found")

    # long keys are published split over several strings
    record = "".join(txts)
    if not validate_dkim(record):
        return DKIMRecord(selector=selector, domain=domain, record=record, valid=False,
                          error="DKIM record appears malformed")

    logger.debug("valid DKIM record at %s", name)
    return DKIMRecord(selector=selector, domain=domain, record=record, valid=True)


async def check_ptr_and_forward(resolver: Resolver, ip: str,
                                timeout: float = DNS_TIMEOUT) -> PTRRecord:
    """Reverse lookup of ``ip``, then forward lookup of every PTR name.

    The result is forward-confirmed (FCrDNS) when one of the names resolves
    back to ``ip``. A failing forward lookup only drops that name's addresses.
    """
    try:
        ptr_names = await asyncio.wait_for(resolver.lookup_ptr(ip, timeout), timeout)
    except (LOOKUP_ERRORS + (ValueError,)) as e:
        logger.warning("PTR lookup for %s failed: %s", ip, _describe(e))
        return PTRRecord(ip=ip, error=f"Failed to lookup PTR record: {_describe(e)}")

    if not ptr_names:
        return PTRRecord(ip=ip, error="No PTR record found")

    forward_ips: List[str] = []
    for name in ptr_names:
        try:
            addrs = await asyncio.wait_for(resolver.lookup_host(name, timeout), timeout)
        except LOOKUP_ERRORS as e:
            logger.debug("forward lookup for %s failed: %s", name, _describe(e))
            continue
        for addr in addrs:
            if addr not in forward_ips:
                forward_ips.append(addr)

    return PTRRecord(
        ip=ip,
        ptr_names=list(ptr_names),
        forward_ips=forward_ips,
        forward_confirmed=ip in forward_ips,
    )


async def is_dnssec_authenticated(resolver: Resolver, domain: str,
                                  timeout: float = DNS_TIMEOUT) -> bool:
    """Whether answers for ``domain`` come with a validated chain of trust.

    Lookup errors (including timeouts) propagate to the caller.
    """
    return await asyncio.wait_for(
        resolver.is_authenticated(normalize_domain(domain), timeout), timeout
    )
