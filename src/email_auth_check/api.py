import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request

from .config import Settings, get_settings
from .core import generate_report
from . import dns_utils
from .message import ParsedMessage

logger = logging.getLogger(__name__)

app = FastAPI(title="email-auth-check", version="0.1.0")


def get_resolver(settings: Settings = Depends(get_settings)) -> dns_utils.Resolver:
    return dns_utils.DnsPythonResolver(settings.nameservers)


@app.get("/health")
async def health():
    """Simple health check endpoint."""
    return {"status": "ok", "service": "email-auth-check"}


@app.post("/analyze")
async def analyze(request: Request, dns: bool = Query(True),
                  settings: Settings = Depends(get_settings),
                  resolver: dns_utils.Resolver = Depends(get_resolver)):
    """Analyze the raw RFC 5322 message sent as request body."""
    raw = await request.body()
    try:
        message = ParsedMessage.from_bytes(raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await generate_report(message, resolver=resolver, settings=settings, check_dns=dns)


@app.get("/dkim/{domain}")
async def get_dkim(domain: str, selector: str = Query(...),
                   settings: Settings = Depends(get_settings),
                   resolver: dns_utils.Resolver = Depends(get_resolver)):
    """Look up and validate the DKIM key published for a selector."""
    record = await dns_utils.check_dkim_record(resolver, domain.strip(), selector.strip(), settings.dns_timeout)
    return {"domain": domain, "selector": selector, "record": record.model_dump()}


@app.get("/dnssec/{domain}")
async def get_dnssec(domain: str, settings: Settings = Depends(get_settings),
                     resolver: dns_utils.Resolver = Depends(get_resolver)):
    """Tell whether answers for the domain are DNSSEC-authenticated."""
    try:
        authenticated = await dns_utils.is_dnssec_authenticated(resolver, domain, settings.dns_timeout)
    except dns_utils.LOOKUP_ERRORS as e:
        logger.warning("DNSSEC lookup for %s failed: %s", domain, e)
        raise HTTPException(status_code=502, detail=f"DNS lookup failed: {e}")
    return {"domain": dns_utils.normalize_domain(domain), "dnssec": authenticated}
