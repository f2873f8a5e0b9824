"""Structural validation of ARC (Authenticated Received Chain) header sets.

Each hop adds an ARC-Authentication-Results, ARC-Message-Signature and
ARC-Seal header sharing one instance number ``i=``. Signatures are not
verified here, only that the three groups line up.
"""

import logging
import re
from typing import List, Optional

from .message import ParsedMessage
from .models import ARCOutcome, ARCResultCode

logger = logging.getLogger(__name__)

ARC_AUTH_RESULTS = "ARC-Authentication-Results"
ARC_MESSAGE_SIGNATURE = "ARC-Message-Signature"
ARC_SEAL = "ARC-Seal"

ARC_INSTANCE_RE = re.compile(r"(?:^|[\s;])i=(\d+)")


def pluralize(count: int) -> str:
    return "y" if count == 1 else "ies"


def extract_arc_instances(headers: List[str]) -> List[int]:
    """Instance numbers of the given headers; headers without ``i=`` are skipped."""
    instances = []
    for header in headers:
        m = ARC_INSTANCE_RE.search(header)
        if m:
            instances.append(int(m.group(1)))
    return instances


def validate_arc_chain(auth_results: List[str], message_sigs: List[str], seals: List[str]) -> bool:
    if not (len(auth_results) == len(message_sigs) == len(seals)):
        return False

    # no ARC at all is technically a valid chain
    if not seals:
        return True

    expected = list(range(1, len(seals) + 1))
    for group in (seals, message_sigs, auth_results):
        if sorted(extract_arc_instances(group)) != expected:
            return False
    return True


def _arc_groups(message: ParsedMessage):
    return (
        message.get_all(ARC_AUTH_RESULTS),
        message.get_all(ARC_MESSAGE_SIGNATURE),
        message.get_all(ARC_SEAL),
    )


def parse_arc_chain(message: ParsedMessage) -> Optional[ARCOutcome]:
    """Build an ARC outcome from the raw ARC headers.

    Returns None when the message carries no ARC header at all, which is
    different from a ``none`` result.
    """
    auth_results, message_sigs, seals = _arc_groups(message)
    if not auth_results and not message_sigs and not seals:
        return None

    chain_length = len(seals)
    chain_valid = validate_arc_chain(auth_results, message_sigs, seals)

    if chain_length == 0:
        result = ARCResultCode.NONE
        details = "No ARC chain present"
    elif not chain_valid:
        result = ARCResultCode.FAIL
        details = f"ARC chain validation failed (chain length: {chain_length})"
    else:
        result = ARCResultCode.PASS
        details = f"ARC chain valid with {chain_length} intermediar{pluralize(chain_length)}"

    logger.debug("ARC chain: %s", details)
    return ARCOutcome(
        result=result.value,
        chain_length=chain_length,
        chain_valid=chain_valid,
        details=details,
    )


def enhance_arc_chain(message: ParsedMessage, outcome: Optional[ARCOutcome]) -> None:
    """Fill in chain_length/chain_valid on an existing outcome, in place.

    Fields that are already set are left untouched.
    """
    if outcome is None:
        return

    auth_results, message_sigs, seals = _arc_groups(message)

    if outcome.chain_length is None:
        outcome.chain_length = len(seals)

    if outcome.chain_valid is None:
        outcome.chain_valid = validate_arc_chain(auth_results, message_sigs, seals)

    # the verdict must agree with the chain: nothing to verify means none,
    # a broken chain cannot pass
    if outcome.chain_length == 0:
        outcome.result = ARCResultCode.NONE.value
    elif outcome.chain_valid is False:
        outcome.result = ARCResultCode.FAIL.value
