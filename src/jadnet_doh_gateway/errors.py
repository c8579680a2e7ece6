"""Error taxonomy for the DoH translation pipeline.

Every failure is one of two kinds: the client's request could not be
understood (``ClientInputError``, HTTP 400) or the upstream round trip or
answer serialization failed (``UpstreamError``, HTTP 500).
"""


class GatewayError(Exception):
    """Base class for pipeline failures."""
    status_code = 500


class ClientInputError(GatewayError):
    """The inbound HTTP request is malformed or unsupported."""
    status_code = 400


class MissingQuery(ClientInputError):
    pass


class BadEncoding(ClientInputError):
    pass


class MalformedMessage(ClientInputError):
    pass


class InvalidQuestionCount(ClientInputError):
    pass


class UnsupportedMediaType(ClientInputError):
    pass


class UnsupportedMethod(ClientInputError):
    pass


class UpstreamError(GatewayError):
    """The upstream resolver leg or answer serialization failed."""
    status_code = 500


class ConnectionFailed(UpstreamError):
    pass


class UpstreamTimeout(UpstreamError):
    pass


class WriteFailed(UpstreamError):
    pass


class ReadFailed(UpstreamError):
    pass


class MalformedResponse(UpstreamError):
    pass


class PackFailed(UpstreamError):
    pass
