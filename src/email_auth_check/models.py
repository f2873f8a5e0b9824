from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Mechanism(str, Enum):
    SPF = "spf"
    DKIM = "dkim"
    DMARC = "dmarc"
    BIMI = "bimi"
    IPREV = "iprev"
    ARC = "arc"
    ALIGNED_FROM = "x-aligned-from"
    X_GOOGLE_DKIM = "x-google-dkim"


class AuthResultCode(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    NEUTRAL = "neutral"
    SOFTFAIL = "softfail"
    NONE = "none"
    TEMPERROR = "temperror"
    PERMERROR = "permerror"
    DECLINED = "declined"


class ARCResultCode(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    NONE = "none"


class AuthOutcome(BaseModel):
    mechanism: Mechanism
    # lower-cased result code as found in the header; unknown codes are kept
    result: str = AuthResultCode.NONE.value
    domain: Optional[str] = None
    selector: Optional[str] = None
    ip: Optional[str] = None
    hostname: Optional[str] = None
    details: str = ""


class ARCOutcome(BaseModel):
    result: str = ARCResultCode.NONE.value
    chain_length: Optional[int] = Field(default=None, ge=0)
    chain_valid: Optional[bool] = None
    details: str = ""


class DKIMRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    selector: str
    domain: str
    record: Optional[str] = None
    valid: bool
    error: Optional[str] = None


class PTRRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    ip: str
    ptr_names: List[str] = Field(default_factory=list)
    forward_ips: List[str] = Field(default_factory=list)
    # the sending IP is among the addresses its PTR names resolve to
    forward_confirmed: bool = False
    error: Optional[str] = None


class AuthenticationBundle(BaseModel):
    spf: Optional[AuthOutcome] = None
    dkim: List[AuthOutcome] = Field(default_factory=list)
    dmarc: Optional[AuthOutcome] = None
    bimi: Optional[AuthOutcome] = None
    iprev: Optional[AuthOutcome] = None
    arc: Optional[ARCOutcome] = None
    aligned_from: Optional[AuthOutcome] = None
    x_google_dkim: Optional[AuthOutcome] = None


class MechanismScores(BaseModel):
    spf: int
    dkim: int
    dkim_records: int
    dmarc: int
    iprev: int
    aligned_from: int
    bimi: int
    x_google_dkim: int
    ptr: int


class Report(BaseModel):
    message_id: Optional[str]
    time_utc: str
    authentication: AuthenticationBundle
    dkim_records: List[DKIMRecord]
    ptr_record: Optional[PTRRecord] = None
    dnssec: dict
    scores: MechanismScores
    elapsed_seconds: float
