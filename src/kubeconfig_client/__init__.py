"""kubeconfig-client: Authenticated API clients from kubeconfig files.

This package parses kubeconfig documents, resolves a context into its
cluster, user credential and namespace, runs exec credential plugins,
and builds a requests session configured for the cluster.

Example usage:
    from kubeconfig_client import connect

    # Build a client for the current context
    with connect("~/.kube/config") as client:
        response = client.send(client.get("/api/v1/namespaces"))
"""

__version__ = "0.1.0"

from icecream import ic

from kubeconfig_client.client import KubernetesClient, client_for, connect
from kubeconfig_client.config import KubernetesConfig, decode_config, load_config
from kubeconfig_client.exceptions import (
    AuthPluginDeserializeError,
    AuthPluginError,
    AuthPluginExecError,
    CertificateConversionError,
    ClientInitError,
    ConfigDeserializeError,
    ConfigReadError,
    ContextNotFoundError,
    InvalidAuthHeaderError,
    InvalidCertificateError,
    InvalidIdentityError,
    KubeconfigError,
    MissingReference,
    UnsupportedAuthError,
)
from kubeconfig_client.exec_plugin import resolve_exec_auth, run_exec_plugin
from kubeconfig_client.material import ByteMaterial
from kubeconfig_client.models import (
    Auth,
    AuthKind,
    CertificateEmbeddedAuth,
    CertificateFileAuth,
    Cluster,
    ExecAuth,
    ExecAuthDescriptor,
    ExecCredential,
    NullAuth,
    PlainAuth,
    ResolvedContext,
    TokenAuth,
)

__all__ = [
    # Version
    "__version__",
    # Pipeline
    "connect",
    "client_for",
    "load_config",
    "decode_config",
    "resolve_exec_auth",
    "run_exec_plugin",
    # Classes
    "KubernetesClient",
    "KubernetesConfig",
    "ByteMaterial",
    "Cluster",
    "ResolvedContext",
    "ExecAuthDescriptor",
    "ExecCredential",
    # Auth kinds
    "Auth",
    "AuthKind",
    "PlainAuth",
    "TokenAuth",
    "CertificateFileAuth",
    "CertificateEmbeddedAuth",
    "ExecAuth",
    "NullAuth",
    # Exceptions
    "KubeconfigError",
    "ConfigReadError",
    "ConfigDeserializeError",
    "ContextNotFoundError",
    "MissingReference",
    "InvalidAuthHeaderError",
    "InvalidIdentityError",
    "ClientInitError",
    "AuthPluginExecError",
    "AuthPluginError",
    "AuthPluginDeserializeError",
    "CertificateConversionError",
    "InvalidCertificateError",
    "UnsupportedAuthError",
]

# Debug tracing stays quiet for library callers; the CLI enables it with --debug
ic.disable()
