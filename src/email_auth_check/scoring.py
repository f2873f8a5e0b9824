"""Per-mechanism confidence scores in the range 0-100.

Scores are mechanism-local; combining them into a single deliverability
number is left to the caller. ARC is deliberately not scored.
"""

from typing import Optional, Sequence

from .models import AuthOutcome, AuthResultCode, DKIMRecord, PTRRecord


def score_spf(outcome: Optional[AuthOutcome]) -> int:
    if outcome is None:
        return 0
    if outcome.result == AuthResultCode.PASS:
        return 100
    if outcome.result in (AuthResultCode.NEUTRAL, AuthResultCode.NONE):
        return 50
    if outcome.result == AuthResultCode.SOFTFAIL:
        return 17
    # fail, temperror, permerror and anything unknown
    return 0


def score_dkim(outcomes: Sequence[AuthOutcome]) -> int:
    """Score the DKIM signatures of one message.

    At least one passing signature is expected; a mix of passing and
    non-passing ones costs a little.
    """
    if not outcomes:
        return 0
    has_pass = any(o.result == AuthResultCode.PASS for o in outcomes)
    has_non_pass = any(o.result != AuthResultCode.PASS for o in outcomes)
    if has_pass and has_non_pass:
        return 90
    if has_pass:
        return 100
    return 20


def score_dkim_records(records: Sequence[DKIMRecord]) -> int:
    """Score the publishing side: are the DKIM keys actually in DNS?"""
    if not records:
        return 0
    if any(r.valid for r in records):
        return 100
    # partial credit, a record exists but has issues
    return 25


def score_aligned_from(outcome: Optional[AuthOutcome]) -> int:
    if outcome is not None and outcome.result == AuthResultCode.PASS:
        return 100
    return 0


def score_dmarc(outcome: Optional[AuthOutcome]) -> int:
    if outcome is None:
        return 0
    if outcome.result == AuthResultCode.PASS:
        return 100
    if outcome.result == AuthResultCode.NONE:
        return 33
    return 0


def score_iprev(outcome: Optional[AuthOutcome]) -> int:
    if outcome is not None and outcome.result == AuthResultCode.PASS:
        return 100
    return 0


def score_bimi(outcome: Optional[AuthOutcome]) -> int:
    if outcome is None:
        return 0
    if outcome.result == AuthResultCode.PASS:
        return 100
    if outcome.result == AuthResultCode.DECLINED:
        return 59
    return 0


def score_x_google_dkim(outcome: Optional[AuthOutcome]) -> int:
    """Google's internal DKIM check only ever matters when it passes."""
    if outcome is not None and outcome.result == AuthResultCode.PASS:
        return 100
    return 0


def score_ptr(record: Optional[PTRRecord]) -> int:
    """Reverse DNS of the sending IP, with a bonus for forward confirmation."""
    if record is None or not record.ptr_names:
        return 0
    score = 50
    if len(record.ptr_names) > 1:
        score -= 15
    if record.forward_confirmed:
        score += 50
    return score
