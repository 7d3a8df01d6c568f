"""Data models for kubeconfig-client.

This module provides type-safe data structures for a decoded kubeconfig:
clusters, contexts and users as named entries, the closed set of user
credential kinds, and the resolved view of one selected context.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar

from kubeconfig_client.material import ByteMaterial

DEFAULT_NAMESPACE = "default"


class CertificateSource(str, Enum):
    """Where a cluster certificate authority was read from.

    The values are the kubeconfig field names, so they can be used
    directly in error messages.
    """

    FILE = "certificate-authority"
    EMBEDDED = "certificate-authority-data"


class AuthKind(str, Enum):
    """The mutually exclusive credential kinds a user entry may hold."""

    PLAIN = "plain"
    TOKEN = "token"
    CERTIFICATE_FILE = "certificate-file"
    CERTIFICATE_EMBEDDED = "certificate-embedded"
    EXEC = "exec"
    NULL = "null"


@dataclass(frozen=True, slots=True)
class CertificateAuthority:
    """A cluster trust root and the field it came from."""

    source: CertificateSource
    certificate: ByteMaterial


@dataclass(frozen=True, slots=True)
class Cluster:
    """A server endpoint plus its trust configuration.

    Attributes:
        server: The API server URL as written in the kubeconfig.
        insecure_skip_tls_verify: Disable server certificate verification.
        certificate_authority: Optional trust root for the server.

    """

    server: str
    insecure_skip_tls_verify: bool = False
    certificate_authority: CertificateAuthority | None = None


@dataclass(frozen=True, slots=True)
class Context:
    """A binding of one cluster to one user, by name."""

    cluster: str
    user: str
    namespace: str | None = None


@dataclass(frozen=True, slots=True)
class ExecAuthDescriptor:
    """How to run an exec credential plugin.

    Attributes:
        api_version: The client.authentication.k8s.io version the plugin speaks.
        command: The executable to run.
        args: Arguments passed to the executable, in order.
        env: Variables added to the inherited process environment.

    """

    api_version: str
    command: str
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict, hash=False)


@dataclass(frozen=True, slots=True)
class PlainAuth:
    kind: ClassVar[AuthKind] = AuthKind.PLAIN

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class TokenAuth:
    kind: ClassVar[AuthKind] = AuthKind.TOKEN

    token: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class CertificateFileAuth:
    """Client certificate and key read from files (``client-certificate``/``client-key``)."""

    kind: ClassVar[AuthKind] = AuthKind.CERTIFICATE_FILE

    certificate: ByteMaterial
    key: ByteMaterial


@dataclass(frozen=True, slots=True)
class CertificateEmbeddedAuth:
    """Client certificate and key embedded in the document or returned by a plugin."""

    kind: ClassVar[AuthKind] = AuthKind.CERTIFICATE_EMBEDDED

    certificate: ByteMaterial
    key: ByteMaterial


@dataclass(frozen=True, slots=True)
class ExecAuth:
    kind: ClassVar[AuthKind] = AuthKind.EXEC

    exec: ExecAuthDescriptor


@dataclass(frozen=True, slots=True)
class NullAuth:
    """A user entry without any recognized credential."""

    kind: ClassVar[AuthKind] = AuthKind.NULL


Auth = PlainAuth | TokenAuth | CertificateFileAuth | CertificateEmbeddedAuth | ExecAuth | NullAuth


@dataclass(frozen=True, slots=True)
class ExecCredential:
    """The credential an exec plugin printed on standard output.

    ``status`` is either a TokenAuth or a CertificateEmbeddedAuth; the
    expiration is kept for callers but not acted on.
    """

    api_version: str
    kind: str
    status: TokenAuth | CertificateEmbeddedAuth
    expiration_timestamp: datetime | None = None

    def to_auth(self) -> TokenAuth | CertificateEmbeddedAuth:
        """Return the concrete auth carried by this credential."""
        return self.status


@dataclass(frozen=True, slots=True)
class NamedCluster:
    name: str
    cluster: Cluster


@dataclass(frozen=True, slots=True)
class NamedContext:
    name: str
    context: Context


@dataclass(frozen=True, slots=True)
class NamedUser:
    name: str
    auth: Auth = field(default_factory=NullAuth)


@dataclass(frozen=True, slots=True)
class ResolvedContext:
    """One context with its cluster and user looked up.

    The cluster and auth are the very objects held by the document they
    were resolved from; nothing is copied.

    Attributes:
        name: The context name.
        cluster: The referenced cluster.
        auth: The referenced user's credential.
        namespace: The context namespace, or ``default`` when unset.

    """

    name: str
    cluster: Cluster
    auth: Auth
    namespace: str = DEFAULT_NAMESPACE

    def with_auth(self, auth: Auth) -> "ResolvedContext":
        """Return a copy of this view using ``auth`` instead.

        Used to substitute an exec plugin result without touching the document.
        """
        return ResolvedContext(name=self.name, cluster=self.cluster, auth=auth, namespace=self.namespace)

