"""
TAP Signature-Base Codec

Builds and parses the Signature-Input header and rebuilds the RFC 9421
signature base string that both signer and verifier sign over.
"""

import base64
import binascii
from typing import Optional, Union
from urllib.parse import urlsplit

from .errors import IncompleteContextError, MalformedHeaderError, MalformedSignatureError
from .models import (
    COVERED_COMPONENTS,
    SIGNATURE_LABEL,
    ParsedSignatureInput,
    RequestContext,
    SigningParameters,
)

MAX_HEADER_LENGTH = 4096

_KEY_START = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ*"
_KEY_CHARS = _KEY_START + "0123456789_-."
_TOKEN_CHARS = _KEY_CHARS + ":/%+@!#$&'^`|~"


def quote_value(value: str) -> str:
    """Quote an attribute value as a structured-field string"""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_signature_params(params: SigningParameters) -> str:
    """Signature parameters without the sig2= label"""
    components = " ".join(quote_value(c) for c in COVERED_COMPONENTS)
    return (
        f"({components}); created={params.created}; expires={params.expires}; "
        f"keyId={quote_value(params.key_id)}; alg={quote_value(params.algorithm_name)}; "
        f"nonce={quote_value(params.nonce)}; tag={quote_value(params.tag)}"
    )


def build_signature_input(params: SigningParameters) -> str:
    """Build the Signature-Input header value"""
    return f"{SIGNATURE_LABEL}={build_signature_params(params)}"


def signature_params_from_input(signature_input: str) -> str:
    prefix = f"{SIGNATURE_LABEL}="
    if signature_input.startswith(prefix):
        return signature_input[len(prefix):]
    return signature_input


class _Scanner:
    """Single-pass cursor over a header value"""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return "" if self.at_end() else self.text[self.pos]

    def skip_ws(self) -> None:
        while not self.at_end() and self.text[self.pos] in " \t":
            self.pos += 1

    def expect(self, char: str) -> None:
        if self.peek() != char:
            found = self.peek() or "end of input"
            raise MalformedHeaderError(f"Expected '{char}' at {self.pos}, found {found!r}")
        self.pos += 1

    def read_key(self) -> str:
        start = self.pos
        if self.peek() == "" or self.peek() not in _KEY_START:
            raise MalformedHeaderError(f"Expected attribute name at {self.pos}")
        while not self.at_end() and self.text[self.pos] in _KEY_CHARS:
            self.pos += 1
        return self.text[start:self.pos]

    def read_quoted(self) -> str:
        self.expect('"')
        chars = []
        while True:
            if self.at_end():
                raise MalformedHeaderError("Unterminated quoted string")
            char = self.text[self.pos]
            self.pos += 1
            if char == "\\":
                if self.at_end() or self.text[self.pos] not in ('"', "\\"):
                    raise MalformedHeaderError("Invalid escape in quoted string")
                chars.append(self.text[self.pos])
                self.pos += 1
            elif char == '"':
                return "".join(chars)
            else:
                chars.append(char)

    def read_integer(self) -> int:
        start = self.pos
        if self.peek() == "-":
            self.pos += 1
        while not self.at_end() and self.text[self.pos].isdigit():
            self.pos += 1
        digits = self.text[start:self.pos]
        if digits in ("", "-") or len(digits) > 16:
            raise MalformedHeaderError(f"Invalid integer at {start}")
        return int(digits)

    def read_token(self) -> str:
        start = self.pos
        while not self.at_end() and self.text[self.pos] in _TOKEN_CHARS:
            self.pos += 1
        if start == self.pos:
            raise MalformedHeaderError(f"Expected value at {start}")
        return self.text[start:self.pos]

    def read_value(self) -> Union[int, str]:
        char = self.peek()
        if char == '"':
            return self.read_quoted()
        if char == "-" or char.isdigit():
            return self.read_integer()
        return self.read_token()


def parse_signature_input(header: str) -> ParsedSignatureInput:
    """
    Parse a Signature-Input header.

    Grammar: sig2=("<component>" ...); name=value; name=value ...
    Values are quoted strings, integers or bare tokens. Unknown attributes are
    kept in the attribute map for callers to ignore.

    Raises:
        MalformedHeaderError: on any deviation from the grammar
    """
    if not header or not header.strip():
        raise MalformedHeaderError("Empty Signature-Input header")
    if len(header) > MAX_HEADER_LENGTH:
        raise MalformedHeaderError("Signature-Input header too long")

    scanner = _Scanner(header.strip())
    label = scanner.read_key()
    if label != SIGNATURE_LABEL:
        raise MalformedHeaderError(f"Expected {SIGNATURE_LABEL}= prefix, got {label!r}")
    scanner.expect("=")
    scanner.expect("(")

    components: list[str] = []
    while True:
        scanner.skip_ws()
        if scanner.peek() == ")":
            scanner.pos += 1
            break
        components.append(scanner.read_quoted())

    attributes: dict[str, Union[int, str]] = {}
    while True:
        scanner.skip_ws()
        if scanner.at_end():
            break
        scanner.expect(";")
        scanner.skip_ws()
        name = scanner.read_key()
        scanner.expect("=")
        attributes[name] = scanner.read_value()

    if not isinstance(attributes.get("created"), int):
        raise MalformedHeaderError("created must be an integer")
    if "expires" in attributes and not isinstance(attributes["expires"], int):
        raise MalformedHeaderError("expires must be an integer")

    return ParsedSignatureInput(label=label, components=components, attributes=attributes)


def context_from_url(url: str, headers: Optional[dict[str, str]] = None) -> RequestContext:
    """
    Derive authority and path from the URL the request actually arrived on.

    Raises:
        IncompleteContextError: if the URL has no host
    """
    try:
        parsed = urlsplit(url)
    except ValueError as e:
        raise IncompleteContextError(f"Invalid request URL: {e}")

    authority = parsed.netloc.rsplit("@", 1)[-1]
    if not authority:
        raise IncompleteContextError("Request URL has no authority")

    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"

    return RequestContext(
        authority=authority,
        path=path,
        headers={k.lower(): v for k, v in (headers or {}).items()},
    )


def _resolve_component(component: str, context: RequestContext) -> Optional[str]:
    if component == "host":
        return context.headers.get("host") or context.authority
    if component.startswith("@"):
        return None
    return context.headers.get(component.lower()) or None


def build_signature_base(
    components: list[str],
    context: RequestContext,
    signature_input: str,
) -> str:
    """
    Build the signature base string per RFC 9421.

    @authority and @path are mandatory. Any other component that cannot be
    resolved from the context headers is left out.

    Raises:
        IncompleteContextError: if authority or path is missing
    """
    if not context.authority:
        raise IncompleteContextError("Request context is missing @authority")
    if not context.path:
        raise IncompleteContextError("Request context is missing @path")

    lines = []
    for component in components:
        if component == "@authority":
            lines.append(f'"@authority": {context.authority}')
        elif component == "@path":
            lines.append(f'"@path": {context.path}')
        else:
            value = _resolve_component(component, context)
            if value is not None:
                lines.append(f'"{component}": {value}')

    lines.append(f'"@signature-params": {signature_params_from_input(signature_input)}')
    return "\n".join(lines)


def wrap_signature(signature: bytes) -> str:
    return f"{SIGNATURE_LABEL}=:{base64.b64encode(signature).decode()}:"


def extract_signature(signature_header: str) -> bytes:
    """
    Extract signature bytes from a sig2=:<base64>: header

    Raises:
        MalformedSignatureError: if the wrapper or the base64 payload is invalid
    """
    value = (signature_header or "").strip()
    prefix = f"{SIGNATURE_LABEL}=:"
    if len(value) > MAX_HEADER_LENGTH or not value.startswith(prefix) or not value.endswith(":"):
        raise MalformedSignatureError("Invalid Signature header format")

    payload = value[len(prefix):-1]
    if not payload:
        raise MalformedSignatureError("Empty signature payload")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedSignatureError(f"Invalid base64 signature: {e}")
