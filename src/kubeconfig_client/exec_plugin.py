"""Exec credential plugins.

A user entry may name an external command that prints a short-lived
credential (an ExecCredential document) on standard output. This module
runs that command and maps its output onto a concrete auth value.

The process launcher is a plain callable so tests (and callers with
special needs) can swap it out.
"""

import os
import subprocess
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from typing import Any

import yaml
from icecream import ic

from kubeconfig_client import console
from kubeconfig_client.exceptions import (
    AuthPluginDeserializeError,
    AuthPluginError,
    AuthPluginExecError,
    DecodeError,
)
from kubeconfig_client.material import ByteMaterial
from kubeconfig_client.models import (
    Auth,
    CertificateEmbeddedAuth,
    ExecAuth,
    ExecAuthDescriptor,
    ExecCredential,
    TokenAuth,
)

PluginRunner = Callable[[Sequence[str], Mapping[str, str]], subprocess.CompletedProcess[bytes]]


def run_plugin(argv: Sequence[str], env: Mapping[str, str]) -> subprocess.CompletedProcess[bytes]:
    """Run ``argv`` to completion with ``env`` added to the current environment.

    Standard output and standard error are captured separately and no
    standard input is provided. There is no timeout.

    Raises:
        OSError: If the process cannot be started.

    """
    return subprocess.run(
        list(argv),
        env={**os.environ, **env},
        stdin=subprocess.DEVNULL,
        capture_output=True,
        check=False,
    )


def run_exec_plugin(descriptor: ExecAuthDescriptor, runner: PluginRunner = run_plugin) -> ExecCredential:
    """Run an exec plugin and decode the credential it prints.

    Args:
        descriptor: The exec block of the user entry.
        runner: Process launcher, :func:`run_plugin` by default.

    Returns:
        The decoded ExecCredential.

    Raises:
        AuthPluginExecError: If the plugin cannot be launched.
        AuthPluginError: If the plugin exits non-zero; carries its stderr.
        AuthPluginDeserializeError: If the plugin output is not a usable credential.

    """
    argv = [descriptor.command, *descriptor.args]
    ic(argv)
    console.step(f"Running auth plugin {console.highlight(descriptor.command)}")

    try:
        result = runner(argv, descriptor.env)
    except (OSError, ValueError) as err:
        raise AuthPluginExecError(descriptor.command, err) from err

    if result.returncode != 0:
        stderr = result.stderr or b""
        raise AuthPluginError(descriptor.command, stderr.decode("utf-8", errors="replace"))

    try:
        return decode_exec_credential(result.stdout or b"")
    except DecodeError as err:
        raise AuthPluginDeserializeError(descriptor.command, str(err)) from err


def resolve_exec_auth(auth: Auth, runner: PluginRunner = run_plugin) -> TokenAuth | CertificateEmbeddedAuth | None:
    """Turn an exec auth into the credential its plugin returns.

    The expiration reported by the plugin is dropped; nothing is cached
    and each call runs the plugin again.

    Returns:
        The concrete auth, or None when ``auth`` is not an exec auth
        and there was nothing to run.

    """
    match auth:
        case ExecAuth(exec=descriptor):
            return run_exec_plugin(descriptor, runner).to_auth()
        case _:
            return None


def decode_exec_credential(content: bytes | str) -> ExecCredential:
    """Decode the ExecCredential document printed by a plugin.

    ``status`` must hold either a ``token`` or both ``clientCertificateData``
    and ``clientKeyData``; the certificate fields are PEM text and are
    used verbatim.

    Raises:
        DecodeError: If the document does not match.

    """
    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise DecodeError("", f"malformed output: {err}") from err

    if not isinstance(raw, dict):
        raise DecodeError("", f"expected an ExecCredential mapping, got {type(raw).__name__}")

    api_version = _string(raw, "apiVersion", "")
    kind = _string(raw, "kind", "")
    status = raw.get("status")
    if not isinstance(status, dict):
        raise DecodeError("status", "missing or not a mapping")

    expiration = _timestamp(status.get("expirationTimestamp"))

    credential: TokenAuth | CertificateEmbeddedAuth
    if status.get("token") is not None:
        credential = TokenAuth(token=_string(status, "token", "status"))
    elif status.get("clientCertificateData") is not None and status.get("clientKeyData") is not None:
        credential = CertificateEmbeddedAuth(
            certificate=ByteMaterial.from_text(_string(status, "clientCertificateData", "status")),
            key=ByteMaterial.from_text(_string(status, "clientKeyData", "status")),
        )
    else:
        raise DecodeError("status", "expected token or clientCertificateData and clientKeyData")

    return ExecCredential(api_version=api_version, kind=kind, status=credential, expiration_timestamp=expiration)


def _string(doc: dict[str, Any], key: str, location: str) -> str:
    value = doc.get(key)
    where = f"{location}.{key}" if location else key
    if value is None:
        raise DecodeError(where, "missing required field")
    if not isinstance(value, str):
        raise DecodeError(where, f"expected a string, got {type(value).__name__}")
    return value


def _timestamp(value: Any) -> datetime | None:
    # PyYAML already turns unquoted ISO timestamps into datetimes
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise DecodeError("status.expirationTimestamp", f"expected a timestamp, got {type(value).__name__}")
    try:
        return datetime.fromisoformat(value)
    except ValueError as err:
        raise DecodeError("status.expirationTimestamp", str(err)) from err
