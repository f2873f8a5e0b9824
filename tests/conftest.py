"""
Pytest configuration and fixtures for email-auth-check tests
"""

import asyncio
import sys
from pathlib import Path

import dns.resolver
import pytest

# Add src/ to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from email_auth_check.message import ParsedMessage  # noqa: E402


class FakeResolver:
    """In-memory Resolver: answers come from dicts, unknown names are NXDOMAIN."""

    def __init__(self, txt=None, dnssec=None, errors=None, delay=0.0, ptr=None, hosts=None):
        self.txt = txt or {}
        self.ptr = ptr or {}
        self.hosts = hosts or {}
        self.dnssec = dnssec or {}
        self.errors = errors or {}
        self.delay = delay
        self.queries = []

    async def lookup_txt(self, name, timeout):
        self.queries.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if name in self.errors:
            raise self.errors[name]
        if name not in self.txt:
            raise dns.resolver.NXDOMAIN()
        return list(self.txt[name])

    async def lookup_mx(self, name, timeout):
        return []

    async def lookup_ptr(self, addr, timeout):
        self.queries.append(addr)
        if addr in self.errors:
            raise self.errors[addr]
        return list(self.ptr.get(addr, []))

    async def lookup_host(self, host, timeout):
        self.queries.append(host)
        if host in self.errors:
            raise self.errors[host]
        if host not in self.hosts:
            raise dns.resolver.NXDOMAIN()
        return list(self.hosts[host])

    async def is_authenticated(self, domain, timeout):
        self.queries.append(domain)
        domain = domain.rstrip(".").lower()
        if domain not in self.dnssec:
            raise dns.resolver.NXDOMAIN()
        return self.dnssec[domain]


@pytest.fixture
def fake_resolver():
    return FakeResolver(
        txt={
            "selector1._domainkey.example.com": ["v=DKIM1; k=rsa; p=MIGfMA0GCSqGSIb3DQEBAQUAA4GNADCBiQKBgQ"],
            "broken._domainkey.example.com": ["v=DKIM1; k=rsa"],
            "empty._domainkey.example.com": [],
        },
        dnssec={"example.com": True, "example.org": False},
        ptr={"192.0.2.1": ["mail.example.com"]},
        hosts={"mail.example.com": ["192.0.2.1"]},
    )


@pytest.fixture
def sample_message():
    """Message relayed once through a mailing list, with one ARC set."""
    return ParsedMessage([
        ("Authentication-Results",
         "mx.example.net; spf=pass smtp.mailfrom=sender@example.com; "
         "dkim=pass header.d=example.com header.s=selector1; "
         "dmarc=pass header.from=example.com; "
         "iprev=pass smtp.remote-ip=192.0.2.1 (mail.example.com); "
         "x-aligned-from=pass (Address match)"),
        ("ARC-Seal", "i=1; a=rsa-sha256; cv=none; d=lists.example.org; s=arc; b=abc"),
        ("ARC-Message-Signature", "i=1; a=rsa-sha256; c=relaxed/relaxed; d=lists.example.org; s=arc; b=def"),
        ("ARC-Authentication-Results", "i=1; lists.example.org; spf=pass smtp.mailfrom=example.com"),
        ("From", "Sender <sender@example.com>"),
        ("Message-ID", "<1234@example.com>"),
    ])


RAW_MESSAGE = (
    b"Received-SPF: Pass (mx.example.net: domain of sender@example.com designates 192.0.2.1)\r\n"
    b" envelope-from=\"sender@example.com\"; client-ip=192.0.2.1;\r\n"
    b"DKIM-Signature: v=1; a=rsa-sha256; d=example.com; s=selector1;\r\n"
    b"\tbh=47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU=; b=xyz\r\n"
    b"From: Sender <sender@example.com>\r\n"
    b"To: rcpt@example.net\r\n"
    b"Subject: hello\r\n"
    b"Message-ID: <raw@example.com>\r\n"
    b"\r\n"
    b"Body text\r\n"
)


@pytest.fixture
def raw_message():
    return RAW_MESSAGE
