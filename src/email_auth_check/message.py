"""Minimal parsed-message view used by the authentication analysis.

Only the header block matters here: MIME bodies are never decoded.
"""

import re
from email import message_from_bytes, message_from_string
from email.policy import compat32
from typing import Dict, Iterable, List, Optional, Tuple, Union

FOLDING_RE = re.compile(r"\r?\n[ \t]+")


def unfold(value: str) -> str:
    """Join folded header continuation lines with a single space."""
    return FOLDING_RE.sub(" ", value).strip()


def split_fields(value: str) -> List[str]:
    """Split a header value on ``;``, except inside ``(...)`` comments.

    ``dkim=pass (1024-bit key; unprotected) header.d=example.com`` stays
    one field.
    """
    fields = []
    current = []
    depth = 0
    for ch in value:
        if ch == "(":
            depth += 1
        elif ch == ")" and depth:
            depth -= 1
        elif ch == ";" and not depth:
            fields.append("".join(current))
            current = []
            continue
        current.append(ch)
    fields.append("".join(current))
    return fields


def authserv_id_of(value: str) -> str:
    """The authserv-id of an Authentication-Results value, lower-cased.

    The optional RFC 8601 version (``mx.example.net 1;``) is dropped.
    """
    head = split_fields(value)[0].split()
    return head[0].lower() if head else ""


class ParsedMessage:
    """Case-insensitive, multi-valued header map.

    Duplicate headers are kept in the order they were received.
    """

    def __init__(self, headers: Iterable[Tuple[str, str]] = ()):
        self._headers: Dict[str, List[str]] = {}
        for name, value in headers:
            self.add(name, value)

    @classmethod
    def from_bytes(cls, raw: Union[bytes, str]) -> "ParsedMessage":
        if isinstance(raw, bytes):
            msg = message_from_bytes(raw, policy=compat32)
        else:
            msg = message_from_string(raw, policy=compat32)
        items = [(name, unfold(str(value))) for name, value in msg.items()]
        if not items:
            raise ValueError("no headers found in message")
        return cls(items)

    def add(self, name: str, value: str) -> None:
        self._headers.setdefault(name.lower(), []).append(value)

    def get_all(self, name: str) -> List[str]:
        return list(self._headers.get(name.lower(), []))

    def get(self, name: str) -> Optional[str]:
        values = self._headers.get(name.lower())
        return values[0] if values else None

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._headers

    def get_authentication_results(self, authserv_id: Optional[str] = None) -> List[str]:
        """Return the raw Authentication-Results values.

        When ``authserv_id`` is given, only headers stamped by that server
        are returned; the comparison ignores case.
        """
        results = self.get_all("Authentication-Results")
        if not authserv_id:
            return results
        wanted = authserv_id.strip().lower()
        return [r for r in results if authserv_id_of(r) == wanted]
