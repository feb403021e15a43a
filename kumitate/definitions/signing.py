"""Support for signing request parameters with a shared secret."""
from copy import deepcopy
from datetime import datetime, timedelta, timezone
import json
from typing import (
        Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union)
from urllib.parse import quote, quote_plus

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac

from kumitate.definitions.assemblies import Credentials


DEFAULT_ALGORITHM = 'sha384'

DEFAULT_EXPIRY = timedelta(days=1)

_algorithms = {
        'sha1': hashes.SHA1,
        'sha256': hashes.SHA256,
        'sha384': hashes.SHA384,
        'sha512': hashes.SHA512}

SUPPORTED_ALGORITHMS = frozenset(_algorithms)

# Left unescaped in path segments, besides letters, digits and '_.-~'
_uri_component_safe = "!'()*"


def sign(
        serialized_params: str, secret: str,
        algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Calculates a keyed MAC over serialized parameters.

    The MAC must be computed over exactly the string that is sent to
    the service, so pass the serialized form, not the object.

    Args:
        serialized_params: The parameters as sent on the wire.
        secret: The shared secret to key the MAC with.
        algorithm: Name of the hash algorithm to use.

    Returns:
        The digest as lowercase hexadecimal.

    Raises:
        ValueError: If the secret is empty or the algorithm is not
                supported.
    """
    if not secret:
        raise ValueError('Cannot sign with an empty secret')
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ValueError(f'Unsupported signature algorithm {algorithm}')

    mac = hmac.HMAC(secret.encode('utf-8'), _algorithms[algorithm]())
    mac.update(serialized_params.encode('utf-8'))
    return mac.finalize().hex()


def format_signature(
        serialized_params: str, secret: str,
        algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Signs and returns a signature of the form "<algorithm>:<hex>"."""
    return f'{algorithm}:{sign(serialized_params, secret, algorithm)}'


def expiry_timestamp(
        expires_in: timedelta = DEFAULT_EXPIRY,
        now: Optional[datetime] = None) -> str:
    """Returns an ISO-8601 UTC timestamp expires_in from now.

    The result has millisecond precision and a Z suffix, e.g.
    2024-01-02T03:04:05.678Z.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    expires = (now + expires_in).astimezone(timezone.utc)
    return expires.strftime('%Y-%m-%dT%H:%M:%S.') + (
            f'{expires.microsecond // 1000:03d}Z')


class SignedEnvelope:
    """Serialized parameters, plus their signature if signed.

    Attributes:
        params: The exact JSON text to send as the params field.
        signature: "<algorithm>:<hex>", or None if unsigned.
        expires: The auth.expires value embedded in params, or None.
    """
    def __init__(
            self, params: str, signature: Optional[str] = None,
            expires: Optional[str] = None) -> None:
        """Create a SignedEnvelope."""
        self.params = params
        self.signature = signature
        self.expires = expires

    def __repr__(self) -> str:
        """Return a string representation of the object."""
        return 'SignedEnvelope({}, {}, {})'.format(
                self.params, self.signature, self.expires)


def make_envelope(
        params: Optional[Dict[str, Any]], credentials: Credentials,
        sign_params: bool = True, algorithm: str = DEFAULT_ALGORITHM,
        expires_in: timedelta = DEFAULT_EXPIRY) -> SignedEnvelope:
    """Adds authentication data to params, serializes and signs.

    The given params are not modified. An auth.key or auth.expires
    already present in params is kept.

    Args:
        params: Request parameters, without or with partial auth.
        credentials: Key and secret to authenticate with.
        sign_params: Whether to add an expiry and a signature.
        algorithm: Hash algorithm to sign with.
        expires_in: How far in the future the signature expires.

    Returns:
        An envelope with the serialized (and signed) parameters.
    """
    to_send = deepcopy(params) if params else dict()  # type: Dict[str, Any]
    auth = to_send.setdefault('auth', dict())
    auth.setdefault('key', credentials.key)

    if not sign_params:
        return SignedEnvelope(json.dumps(to_send))

    expires = auth.setdefault('expires', expiry_timestamp(expires_in))
    serialized = json.dumps(to_send)
    signature = format_signature(serialized, credentials.secret, algorithm)
    return SignedEnvelope(serialized, signature, expires)


SMART_CDN_EXPIRY = timedelta(hours=1)

_UrlParamValue = Union[bool, int, float, str]


def _format_url_value(value: _UrlParamValue) -> str:
    """Formats a query value the way the CDN expects it."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _form_encode(pairs: List[Tuple[str, str]]) -> str:
    """Encodes query pairs as application/x-www-form-urlencoded."""
    def encode(text: str) -> str:
        return quote_plus(text, safe='*').replace('~', '%7E')

    return '&'.join(f'{encode(k)}={encode(v)}' for k, v in pairs)


def _set_param(
        pairs: List[Tuple[str, str]], key: str, value: str
        ) -> List[Tuple[str, str]]:
    """Replaces the first pair with key and drops the others.

    If there is no such pair, a new one is added at the end.
    """
    result = list()     # type: List[Tuple[str, str]]
    found = False
    for k, v in pairs:
        if k == key:
            if not found:
                result.append((key, value))
                found = True
        else:
            result.append((k, v))
    if not found:
        result.append((key, value))
    return result


def sign_smart_cdn_url(
        workspace: str, template: str, input_: str,
        credentials: Credentials,
        url_params: Optional[Mapping[
            str, Union[_UrlParamValue, Sequence[_UrlParamValue]]]] = None,
        expires_at: Optional[int] = None) -> str:
    """Creates a signed URL for the Smart CDN.

    The signature covers the workspace, template and input path and
    the sorted query string, which includes the auth key and the
    expiry. It is always an HMAC-SHA256.

    Args:
        workspace: Slug of the workspace.
        template: Slug or id of the template.
        input_: Value that the template sees as ${fields.input}.
        credentials: Key and secret to sign with.
        url_params: Extra query parameters. Values may be lists, which
                repeat the parameter.
        expires_at: When the signature expires, in milliseconds since
                the UNIX epoch. Defaults to one hour from now.

    Returns:
        The signed URL.

    Raises:
        ValueError: If workspace or template is empty.
    """
    if not workspace:
        raise ValueError('A workspace is required')
    if not template:
        raise ValueError('A template is required')

    workspace_slug = quote(workspace, safe=_uri_component_safe)
    template_slug = quote(template, safe=_uri_component_safe)
    input_field = quote(input_, safe=_uri_component_safe)

    if not expires_at:
        expires = datetime.now(timezone.utc) + SMART_CDN_EXPIRY
        expires_at = int(expires.timestamp() * 1000)

    pairs = list()      # type: List[Tuple[str, str]]
    for key, value in (url_params or {}).items():
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _format_url_value(v)) for v in value)
        else:
            pairs.append((key, _format_url_value(value)))

    pairs = _set_param(pairs, 'auth_key', credentials.key)
    pairs = _set_param(pairs, 'exp', str(expires_at))
    pairs.sort(key=lambda pair: pair[0])

    to_sign = f'{workspace_slug}/{template_slug}/{input_field}?' + (
            _form_encode(pairs))
    signature = format_signature(to_sign, credentials.secret, 'sha256')
    pairs = _set_param(pairs, 'sig', signature)

    return (f'https://{workspace_slug}.tlcdn.com/{template_slug}/'
            f'{input_field}?{_form_encode(pairs)}')
