"""Decoding of inbound DoH requests into a canonical query."""
import base64
import binascii
import re
from dataclasses import dataclass
from typing import Optional
from dnslib import DNSLabel, DNSRecord, QTYPE
from fastapi import Request
from .config import logger
from .errors import (
    BadEncoding,
    InvalidQuestionCount,
    MalformedMessage,
    MissingQuery,
    UnsupportedMediaType,
    UnsupportedMethod,
)

DNS_MESSAGE = "application/dns-message"

_B64URL_RE = re.compile(r"[A-Za-z0-9_-]*={0,2}")


@dataclass(frozen=True)
class ResolvedQuery:
    """
    Question extracted from an inbound request.

    ``name`` is the printable form; ``qname`` keeps the wire labels so a
    label containing a literal dot is not split when the query is rebuilt.
    """
    name: str
    qtype: str
    id: int
    qname: DNSLabel


def b64url_decode(encoded: str) -> bytes:
    """
    Decode unpadded base64url text.

    Trailing padding is tolerated, but characters outside the URL-safe
    alphabet are rejected rather than silently skipped.

    Raises:
        BadEncoding: if the text is not valid base64url
    """
    if not _B64URL_RE.fullmatch(encoded):
        raise BadEncoding("dns parameter contains characters outside base64url alphabet")
    stripped = encoded.rstrip('=')
    try:
        return base64.urlsafe_b64decode(stripped + '=' * (-len(stripped) % 4))
    except (binascii.Error, ValueError) as e:
        raise BadEncoding(f"Invalid base64url in dns parameter: {e}") from e


def parse_get(encoded: Optional[str]) -> bytes:
    """Return the wire-format query carried in a GET ``dns`` parameter."""
    if not encoded:
        raise MissingQuery("Missing DNS query parameter in GET request")
    return b64url_decode(encoded)


def parse_post(content_type: Optional[str], body: bytes) -> bytes:
    """Return the wire-format query carried in a POST body."""
    if content_type != DNS_MESSAGE:
        raise UnsupportedMediaType(
            f"incorrect content type, expected '{DNS_MESSAGE}', got {content_type}"
        )
    return body


def unpack_message(data: bytes) -> DNSRecord:
    """
    Unpack wire-format bytes into a message holding exactly one question.

    Raises:
        MalformedMessage: if the bytes are not a DNS message
        InvalidQuestionCount: if the message has zero or several questions
    """
    try:
        msg = DNSRecord.parse(data)
    except Exception as e:
        raise MalformedMessage(f"Failed to unpack DNS message: {e}") from e

    if len(msg.questions) != 1:
        raise InvalidQuestionCount(
            f"Expected exactly one question, got {len(msg.questions)}"
        )
    return msg


def unpack_query(data: bytes) -> ResolvedQuery:
    """Unpack wire-format bytes into a ``ResolvedQuery``."""
    msg = unpack_message(data)
    return _to_query(msg)


def _to_query(msg: DNSRecord) -> ResolvedQuery:
    q = msg.questions[0]
    qtype = QTYPE.get(q.qtype, f"TYPE{q.qtype}")
    return ResolvedQuery(name=str(q.qname), qtype=qtype, id=msg.header.id, qname=q.qname)


def _log_message(method: str, msg: DNSRecord):
    try:
        logger.info(f"{method} Unpacked DNS message:\n{msg}")
    except Exception as e:
        logger.debug(f"{method} Could not format DNS message for logging: {e}")


async def parse_request(request: Request, verbose: bool = False) -> ResolvedQuery:
    """
    Extract the canonical query from an inbound HTTP request.

    GET requests carry the message base64url-encoded in the ``dns`` query
    parameter; POST requests carry it raw in the body with content type
    ``application/dns-message``. Any other method is rejected.

    Args:
        request: The inbound request
        verbose: Log the unpacked message

    Returns:
        The question name, symbolic type and inbound transaction id

    Raises:
        ClientInputError: for any request that cannot be decoded
    """
    if request.method == "GET":
        data = parse_get(request.query_params.get("dns"))
    elif request.method == "POST":
        data = parse_post(request.headers.get("content-type"), await request.body())
    else:
        raise UnsupportedMethod(f"unsupported HTTP method {request.method}")

    msg = unpack_message(data)
    if verbose:
        _log_message(request.method, msg)
    return _to_query(msg)
