import random

import pytest

from email_auth_check.arc import (
    enhance_arc_chain,
    extract_arc_instances,
    parse_arc_chain,
    pluralize,
    validate_arc_chain,
)
from email_auth_check.message import ParsedMessage
from email_auth_check.models import ARCOutcome


def arc_set(instances):
    auth = [f"i={i}; relay{i}.example; spf=pass" for i in instances]
    sigs = [f"i={i}; a=rsa-sha256; d=relay{i}.example; s=arc" for i in instances]
    seals = [f"i={i}; a=rsa-sha256; cv=pass; d=relay{i}.example; s=arc" for i in instances]
    return auth, sigs, seals


def arc_message(auth, sigs, seals):
    headers = [("ARC-Authentication-Results", v) for v in auth]
    headers += [("ARC-Message-Signature", v) for v in sigs]
    headers += [("ARC-Seal", v) for v in seals]
    return ParsedMessage(headers)


def test_pluralize():
    assert pluralize(1) == "y"
    assert pluralize(2) == "ies"


def test_extract_arc_instances():
    headers = ["i=2; a=rsa-sha256", "a=rsa-sha256; i=1", "a=rsa-sha256; d=example.com", "header.i=@x"]
    assert extract_arc_instances(headers) == [2, 1]


def test_empty_chain_is_valid():
    assert validate_arc_chain([], [], []) is True


@pytest.mark.parametrize("n", [1, 2, 3, 5])
def test_well_formed_chain_in_any_order_is_valid(n):
    rnd = random.Random(n)
    groups = []
    for _ in range(3):
        order = list(range(1, n + 1))
        rnd.shuffle(order)
        groups.append(arc_set(order))
    # take each group from an independently shuffled set
    assert validate_arc_chain(groups[0][0], groups[1][1], groups[2][2]) is True


@pytest.mark.parametrize("instances", [[1, 3], [1, 1], [2, 3], [0, 1]])
def test_gap_or_duplicate_is_invalid(instances):
    auth, sigs, seals = arc_set(instances)
    assert validate_arc_chain(auth, sigs, seals) is False


def test_duplicate_in_one_group_only_is_invalid():
    auth, sigs, seals = arc_set([1, 2])
    sigs[1] = sigs[0]
    assert validate_arc_chain(auth, sigs, seals) is False


def test_mismatched_group_sizes_is_invalid():
    auth, sigs, seals = arc_set([1])
    assert validate_arc_chain(auth, sigs, []) is False


def test_missing_instance_tag_is_invalid():
    auth, sigs, seals = arc_set([1, 2])
    auth[1] = "relay2.example; spf=pass"
    assert validate_arc_chain(auth, sigs, seals) is False


def test_parse_arc_chain_absent():
    assert parse_arc_chain(ParsedMessage([("From", "a@example.com")])) is None


def test_parse_arc_chain_two_hops():
    out = parse_arc_chain(arc_message(*arc_set([1, 2])))
    assert out.chain_length == 2
    assert out.chain_valid is True
    assert out.result == "pass"
    assert out.details == "ARC chain valid with 2 intermediaries"


def test_parse_arc_chain_single_hop_details():
    out = parse_arc_chain(arc_message(*arc_set([1])))
    assert out.details == "ARC chain valid with 1 intermediary"


def test_parse_arc_chain_invalid():
    auth, sigs, seals = arc_set([1, 3])
    out = parse_arc_chain(arc_message(auth, sigs, seals))
    assert out.result == "fail"
    assert out.chain_valid is False
    assert out.details == "ARC chain validation failed (chain length: 2)"


def test_parse_arc_chain_without_seal_is_none():
    auth, sigs, _ = arc_set([1])
    out = parse_arc_chain(arc_message(auth, sigs, []))
    assert out.chain_length == 0
    assert out.chain_valid is False
    assert out.result == "none"


def test_enhance_backfills_missing_fields():
    outcome = ARCOutcome(result="pass", details="pass")
    enhance_arc_chain(arc_message(*arc_set([1, 2])), outcome)
    assert outcome.chain_length == 2
    assert outcome.chain_valid is True
    assert outcome.result == "pass"


def test_enhance_never_overwrites():
    outcome = ARCOutcome(result="pass", chain_length=3, chain_valid=True)
    enhance_arc_chain(arc_message(*arc_set([1])), outcome)
    assert outcome.chain_length == 3
    assert outcome.chain_valid is True


def test_enhance_zero_length_becomes_none():
    outcome = ARCOutcome(result="fail", details="fail")
    enhance_arc_chain(ParsedMessage(), outcome)
    assert outcome.chain_length == 0
    assert outcome.chain_valid is True
    assert outcome.result == "none"


def test_enhance_broken_chain_cannot_pass():
    auth, sigs, seals = arc_set([1, 2])
    outcome = ARCOutcome(result="pass")
    enhance_arc_chain(arc_message(auth, sigs, seals[:1]), outcome)
    assert outcome.chain_valid is False
    assert outcome.result == "fail"


def test_enhance_none_is_noop():
    enhance_arc_chain(ParsedMessage(), None)
