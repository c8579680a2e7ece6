"""Synthesis of outgoing DNS queries."""
import random
from typing import Union
from dnslib import CLASS, DNSHeader, DNSLabel, DNSQuestion, DNSRecord, OPCODE, QTYPE, RCODE


def fqdn(name: Union[str, DNSLabel]) -> Union[str, DNSLabel]:
    """Return ``name`` with a trailing dot. A ``DNSLabel`` is already absolute."""
    if isinstance(name, DNSLabel) or name.endswith('.'):
        return name
    return name + '.'


def create_query(name: Union[str, DNSLabel], qtype: str) -> DNSRecord:
    """
    Build a fresh recursive query for ``name``.

    ``name`` may be a string or the ``DNSLabel`` taken from an inbound
    question; a label is used as-is so its wire labels survive unchanged.
    Only "A" is mapped to its own record type; every other type string is
    queried as AAAA. The transaction id is newly generated and never taken
    from the inbound request.
    """
    rtype = QTYPE.A if qtype == "A" else QTYPE.AAAA

    header = DNSHeader(
        id=random.randint(0, 0xFFFF),
        opcode=OPCODE.QUERY,
        rcode=RCODE.NOERROR,
        rd=1,
    )
    return DNSRecord(header, q=DNSQuestion(fqdn(name), rtype, CLASS.IN))
