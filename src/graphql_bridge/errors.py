"""Error taxonomy for the GraphQL bridge.

graphql-core copies the ``extensions`` of an exception raised inside a resolver
into the formatted error, so every field-level error carries a machine-readable
``code`` next to its message.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BridgeError(Exception):
    code = "BRIDGE_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def extensions(self) -> Dict[str, Any]:
        return {"code": self.code}


class SynthesisError(BridgeError):
    """Raised when no usable schema can be derived from the OpenAPI document."""

    code = "SYNTHESIS_ERROR"


class RegistrationIncompleteError(BridgeError):
    """Raised when the OpenAPI document is requested before routes are final."""

    code = "REGISTRATION_INCOMPLETE"


class LinkResolutionError(BridgeError):
    code = "LINK_RESOLUTION_ERROR"

    def __init__(self, message: str, link: Optional[str] = None) -> None:
        super().__init__(message)
        self.link = link

    @property
    def extensions(self) -> Dict[str, Any]:
        extensions = super().extensions
        if self.link:
            extensions["link"] = self.link
        return extensions


class InvalidArgumentsError(BridgeError):
    code = "INVALID_ARGUMENTS"


class AdapterMisuseError(BridgeError):
    """Raised when the request customization hook fails or rewrites the route."""

    code = "ADAPTER_MISUSE"


class DispatchError(BridgeError):
    """Raised when the in-process call returns a non-2xx status."""

    code = "DISPATCH_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int,
        status_text: str = "",
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.status_text = status_text
        self.body = body

    @property
    def extensions(self) -> Dict[str, Any]:
        extensions = super().extensions
        extensions["statusCode"] = self.status_code
        if self.status_text:
            extensions["statusText"] = self.status_text
        # 5xx bodies may carry internals of the host application.
        if self.body is not None and self.status_code < 500:
            extensions["responseBody"] = self.body
        return extensions


class ResponseDecodeError(DispatchError):
    code = "RESPONSE_DECODE_ERROR"
