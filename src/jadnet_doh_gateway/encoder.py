"""Serialization of upstream answers into DoH responses."""
import struct
from dnslib import DNSError, DNSRecord
from fastapi import Response
from .decoder import DNS_MESSAGE
from .errors import PackFailed


def encode_response(response: DNSRecord) -> bytes:
    """
    Pack an upstream answer to wire format.

    Raises:
        PackFailed: if any part of the message cannot be represented
    """
    try:
        return bytes(response.pack())
    except (DNSError, struct.error, ValueError, TypeError) as e:
        raise PackFailed(f"Failed packing answers: {e}") from e


def dns_message_response(packed: bytes) -> Response:
    """Wrap packed wire-format bytes as an ``application/dns-message`` body."""
    return Response(content=packed, media_type=DNS_MESSAGE)
