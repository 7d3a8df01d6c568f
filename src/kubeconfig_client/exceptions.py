"""Custom exceptions for kubeconfig-client.

This module defines the exception hierarchy used throughout the package.
Every failure detected while loading a kubeconfig, resolving a context,
running an auth plugin or building the HTTP client surfaces as one of
these, with enough context attached to explain what went wrong.
"""

from enum import Enum
from pathlib import Path


class KubeconfigError(Exception):
    """Base exception for all kubeconfig-client errors.

    All custom exceptions in this package inherit from this class,
    allowing callers to catch all kubeconfig-client errors with a single
    except clause if desired.
    """

    pass


class DecodeError(KubeconfigError):
    """Raised while decoding a document that does not match the schema.

    Attributes:
        location: Dotted location of the offending field
                  (e.g. ``users[0].user.client-key``).
        detail: What was wrong with it.

    """

    def __init__(self, location: str, detail: str) -> None:
        self.location = location
        self.detail = detail
        super().__init__(f"{location}: {detail}" if location else detail)


class ConfigReadError(KubeconfigError):
    """Raised when the kubeconfig file cannot be opened or read."""

    def __init__(self, path: Path, source: OSError) -> None:
        self.path = path
        self.source = source
        super().__init__(f"unable to read kubeconfig at {path}: {source}")


class ConfigDeserializeError(KubeconfigError):
    """Raised when the kubeconfig is not valid YAML or does not match the schema.

    This can occur when:
    - The file is not valid YAML
    - A required field is missing or has the wrong type
    - Both members of a mutually exclusive pair are present
    - A referenced certificate file cannot be read, or base64 data is invalid
    """

    def __init__(self, path: Path | None, detail: str) -> None:
        self.path = path
        self.detail = detail
        where = f" at {path}" if path is not None else ""
        super().__init__(f"unable to deserialize kubeconfig{where}: {detail}")


class MissingReference(str, Enum):
    """Which link of the context lookup could not be resolved."""

    CURRENT_CONTEXT = "current-context"
    CONTEXT = "context"
    USER = "user"
    CLUSTER = "cluster"


class ContextNotFoundError(KubeconfigError):
    """Raised when a context cannot be resolved.

    Attributes:
        path: The kubeconfig the lookup ran against, if known.
        reference: Which lookup failed.
        name: The name that could not be found (None when current-context is unset).

    """

    def __init__(self, reference: MissingReference, name: str | None, path: Path | None = None) -> None:
        self.reference = reference
        self.name = name
        self.path = path
        where = f" in kubeconfig at {path}" if path is not None else ""
        if reference is MissingReference.CURRENT_CONTEXT:
            message = f"no current-context is set{where}"
        else:
            message = f"{reference.value} {name!r} not found{where}"
        super().__init__(message)


class InvalidAuthHeaderError(KubeconfigError):
    """Raised when a bearer token cannot be used as an HTTP header value."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"could not add auth header: {message}")


class InvalidIdentityError(KubeconfigError):
    """Raised when the client certificate and key cannot be loaded together."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"client certificate is invalid: {message}")


class ClientInitError(KubeconfigError):
    """Raised when the HTTP session cannot be constructed."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"unable to initialize http client: {message}")


class AuthPluginExecError(KubeconfigError):
    """Raised when an exec auth plugin cannot be launched.

    This can occur when:
    - The command is not installed or not in the system PATH
    - The command is not executable
    """

    def __init__(self, command: str, source: Exception) -> None:
        self.command = command
        self.source = source
        super().__init__(f"error executing auth plugin {command}: {source}")


class AuthPluginError(KubeconfigError):
    """Raised when an exec auth plugin runs but exits with a non-zero status.

    Attributes:
        command: The plugin command.
        message: The plugin's standard error output, verbatim.

    """

    def __init__(self, command: str, message: str) -> None:
        self.command = command
        self.message = message
        super().__init__(f"error from auth plugin {command}: {message}")


class AuthPluginDeserializeError(KubeconfigError):
    """Raised when an exec auth plugin exits cleanly but prints an unusable credential."""

    def __init__(self, command: str, detail: str) -> None:
        self.command = command
        self.detail = detail
        super().__init__(f"error deserializing result from auth plugin {command}: {detail}")


class CertificateConversionError(KubeconfigError):
    """Raised when certificate bytes cannot be converted to PEM text.

    Attributes:
        field: The kubeconfig field the certificate came from.
        message: What went wrong.

    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"error converting {field} to pem: {message}")


class InvalidCertificateError(KubeconfigError):
    """Raised when a cluster certificate authority cannot be parsed.

    Attributes:
        field: The kubeconfig field the certificate came from
               (``certificate-authority`` or ``certificate-authority-data``).

    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"certificate could not be parsed from {field}: {message}")


class UnsupportedAuthError(KubeconfigError):
    """Raised when the client is given an auth kind it cannot apply directly.

    An exec auth must be turned into a concrete credential first,
    see :func:`kubeconfig_client.exec_plugin.resolve_exec_auth`.
    """

    pass
