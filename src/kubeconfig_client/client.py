"""Authenticated HTTP client for a resolved kubeconfig context.

This module provides the KubernetesClient class, which turns a
ResolvedContext into a requests session carrying the cluster trust
root, the client certificate, and the authorization header of the
selected user. It also provides :func:`connect`, which runs the whole
load, resolve and bootstrap pipeline for a kubeconfig file.
"""

import contextlib
import re
import ssl
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

import requests
from icecream import ic
from requests.adapters import HTTPAdapter
from requests.exceptions import InvalidHeader, RequestException
from requests.utils import check_header_validity

from kubeconfig_client import console
from kubeconfig_client.config import KubernetesConfig, load_config
from kubeconfig_client.exceptions import (
    CertificateConversionError,
    ClientInitError,
    InvalidAuthHeaderError,
    InvalidCertificateError,
    InvalidIdentityError,
    UnsupportedAuthError,
)
from kubeconfig_client.exec_plugin import PluginRunner, resolve_exec_auth, run_plugin
from kubeconfig_client.models import (
    Auth,
    CertificateAuthority,
    CertificateEmbeddedAuth,
    CertificateFileAuth,
    ExecAuth,
    NullAuth,
    PlainAuth,
    ResolvedContext,
    TokenAuth,
)

# Text outside these blocks (bundle comments and the like) is ignored
_PEM_BLOCK = re.compile(rb"-----BEGIN [A-Z0-9 ]+-----.*?-----END [A-Z0-9 ]+-----", re.DOTALL)


class _SSLContextAdapter(HTTPAdapter):
    """Transport adapter that hands a prepared SSLContext to urllib3."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs: Any) -> None:
        # HTTPAdapter.__init__ builds the pool manager, so set this first
        self._ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, connections: int, maxsize: int, block: bool = False, **pool_kwargs: Any) -> None:
        pool_kwargs["ssl_context"] = self._ssl_context
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)

    def proxy_manager_for(self, proxy: str, **proxy_kwargs: Any) -> Any:
        proxy_kwargs["ssl_context"] = self._ssl_context
        return super().proxy_manager_for(proxy, **proxy_kwargs)


def bearer_header(auth: Auth) -> dict[str, str]:
    """Return the Authorization header for a token auth, or no headers.

    Raises:
        InvalidAuthHeaderError: If the token cannot be sent as a header value.

    """
    if not isinstance(auth, TokenAuth):
        return {}

    value = f"Bearer {auth.token}"
    try:
        check_header_validity(("Authorization", value))
        value.encode("latin-1")
    except (InvalidHeader, UnicodeEncodeError):
        # The underlying message would echo the token
        raise InvalidAuthHeaderError("token contains characters that are not allowed in a header value") from None
    return {"Authorization": value}


def identity_blob(auth: Auth) -> bytes | None:
    """Return the client certificate followed by its key, if the auth carries a pair."""
    match auth:
        case CertificateFileAuth(certificate=certificate, key=key) | CertificateEmbeddedAuth(
            certificate=certificate, key=key
        ):
            return bytes(certificate) + bytes(key)
        case _:
            return None


def load_identity(ssl_context: ssl.SSLContext, blob: bytes) -> None:
    """Load a concatenated PEM certificate and key as the client identity.

    The blob is written to a private temporary file for OpenSSL and
    removed again before returning.

    Raises:
        InvalidIdentityError: If the certificate or key cannot be loaded.

    """
    # Create temp file with delete=False so OpenSSL can reopen it by name
    temp_file = NamedTemporaryFile(delete=False, suffix=".pem")
    temp_path = Path(temp_file.name)
    try:
        with temp_file:
            temp_file.write(blob)
        ssl_context.load_cert_chain(temp_path)
    except (ssl.SSLError, ValueError) as err:
        raise InvalidIdentityError(str(err)) from err
    finally:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)


def load_trust_root(ssl_context: ssl.SSLContext, authority: CertificateAuthority) -> None:
    """Add a cluster certificate authority to the trusted roots.

    Only the PEM blocks of the file are handed to OpenSSL, so bundles with
    comment lines in any encoding load as long as the blocks themselves do.

    Raises:
        CertificateConversionError: If a PEM block is not ASCII text.
        InvalidCertificateError: If no certificate can be parsed from them.

    """
    field = authority.source.value
    blocks = _PEM_BLOCK.findall(bytes(authority.certificate))
    if not blocks:
        raise InvalidCertificateError(field, "no PEM certificate block found")

    try:
        pem = b"\n".join(blocks).decode("ascii")
    except UnicodeDecodeError as err:
        raise CertificateConversionError(field, "PEM block contains non-ASCII bytes") from err

    try:
        ssl_context.load_verify_locations(cadata=pem)
    except (ssl.SSLError, ValueError) as err:
        raise InvalidCertificateError(field, str(err)) from err


class KubernetesClient:
    """HTTP client bound to one resolved kubeconfig context.

    Attributes:
        server: The API server URL without trailing slashes.
        namespace: The effective namespace of the context.
        auth: The credential the session was configured with.
        session: The configured requests session.

    """

    def __init__(self, context: ResolvedContext) -> None:
        """Build a session for ``context``.

        Args:
            context: The resolved context. An exec auth must already have
                     been replaced with the credential its plugin returned.

        Raises:
            UnsupportedAuthError: If the auth is still an exec auth.
            InvalidAuthHeaderError: If the bearer token is not a valid header value.
            InvalidIdentityError: If the client certificate or key is malformed.
            CertificateConversionError: If the certificate authority is not PEM text.
            InvalidCertificateError: If the certificate authority cannot be parsed.
            ClientInitError: If the session cannot be constructed.

        """
        cluster = context.cluster
        self.server: str = cluster.server.rstrip("/")
        self.namespace: str = context.namespace
        self.auth: Auth = context.auth

        if isinstance(context.auth, ExecAuth):
            raise UnsupportedAuthError(
                f"exec auth for context {context.name!r} must be resolved before building a client"
            )

        headers = bearer_header(context.auth)

        ssl_context = ssl.create_default_context()
        if cluster.insecure_skip_tls_verify:
            console.warning(f"TLS verification is disabled for {console.highlight(self.server)}")
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE

        blob = identity_blob(context.auth)
        if blob is not None:
            load_identity(ssl_context, blob)

        if cluster.certificate_authority is not None:
            load_trust_root(ssl_context, cluster.certificate_authority)

        if isinstance(context.auth, NullAuth):
            console.warning(f"Context {console.highlight(context.name)} has no user credentials")

        try:
            session = requests.Session()
            session.headers.update(headers)
            if isinstance(context.auth, PlainAuth):
                session.auth = (context.auth.username, context.auth.password)
            session.verify = not cluster.insecure_skip_tls_verify
            session.mount("https://", _SSLContextAdapter(ssl_context))
        except (RequestException, ValueError) as err:
            raise ClientInitError(str(err)) from err

        self.session: requests.Session = session

    def __enter__(self) -> "KubernetesClient":
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return (
            f"KubernetesClient(server={self.server!r}, namespace={self.namespace!r}, "
            f"auth={self.auth.kind.value!r})"
        )

    def close(self) -> None:
        """Close the underlying session."""
        self.session.close()

    def url(self, path: str) -> str:
        """Join ``path`` onto the server URL."""
        return f"{self.server}/{path.lstrip('/')}"

    def request(self, method: str, path: str, **kwargs: Any) -> requests.PreparedRequest:
        """Prepare a request against the server.

        Args:
            method: HTTP method.
            path: Path below the server URL; leading slashes are ignored.
            **kwargs: Passed to :class:`requests.Request` (params, json, headers, ...).

        Returns:
            A prepared request carrying the session headers and auth.

        """
        url = self.url(path)
        ic(method, url)
        return self.session.prepare_request(requests.Request(method, url, **kwargs))

    def get(self, path: str, **kwargs: Any) -> requests.PreparedRequest:
        """Prepare a GET request for ``path``."""
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> requests.PreparedRequest:
        """Prepare a POST request for ``path``."""
        return self.request("POST", path, **kwargs)

    def send(self, prepared: requests.PreparedRequest, **kwargs: Any) -> requests.Response:
        """Send a prepared request through the configured session."""
        return self.session.send(prepared, **kwargs)


def client_for(
    config: KubernetesConfig,
    context: str | None = None,
    runner: PluginRunner = run_plugin,
) -> KubernetesClient:
    """Build a client for one context of a decoded kubeconfig.

    An exec auth is resolved by running its plugin first.

    Args:
        config: The decoded kubeconfig.
        context: Context to use instead of ``current-context``.
        runner: Process launcher for exec auth plugins.

    Returns:
        A client for the selected context.

    Raises:
        ContextNotFoundError: If the context, its user or its cluster is missing.
        KubeconfigError: Any of the plugin or client errors.

    """
    resolved = config.resolve(context) if context is not None else config.require_current_context()

    auth = resolve_exec_auth(resolved.auth, runner)
    if auth is not None:
        resolved = resolved.with_auth(auth)

    return KubernetesClient(resolved)


def connect(
    path: str | Path,
    context: str | None = None,
    runner: PluginRunner = run_plugin,
) -> KubernetesClient:
    """Load the kubeconfig at ``path`` and build a client for one of its contexts.

    See :func:`client_for`; loading may additionally raise ConfigReadError
    or ConfigDeserializeError.
    """
    return client_for(load_config(path), context, runner)
