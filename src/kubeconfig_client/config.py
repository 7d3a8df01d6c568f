"""Kubeconfig loading, decoding and context resolution.

This module turns a kubeconfig YAML document into the typed models of
:mod:`kubeconfig_client.models` and resolves a context name into the
cluster, user credential and namespace it refers to.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from icecream import ic

from kubeconfig_client.exceptions import (
    ConfigDeserializeError,
    ConfigReadError,
    ContextNotFoundError,
    DecodeError,
    MissingReference,
)
from kubeconfig_client.material import ByteMaterial
from kubeconfig_client.models import (
    DEFAULT_NAMESPACE,
    Auth,
    CertificateAuthority,
    CertificateEmbeddedAuth,
    CertificateFileAuth,
    CertificateSource,
    Cluster,
    Context,
    ExecAuth,
    ExecAuthDescriptor,
    NamedCluster,
    NamedContext,
    NamedUser,
    NullAuth,
    PlainAuth,
    ResolvedContext,
    TokenAuth,
)


@dataclass(frozen=True)
class KubernetesConfig:
    """A decoded kubeconfig document.

    The document is never modified after decoding, so any number of
    resolutions may run against it concurrently.

    Attributes:
        clusters: Named clusters, in document order.
        contexts: Named contexts, in document order.
        users: Named users, in document order.
        current_context_name: The ``current-context`` value, if any.
        preferences: The ``preferences`` mapping, passed through untouched.
        api_version: The document ``apiVersion``.
        kind: The document ``kind``.
        path: The file the document was loaded from, if any.

    """

    clusters: tuple[NamedCluster, ...] = ()
    contexts: tuple[NamedContext, ...] = ()
    users: tuple[NamedUser, ...] = ()
    current_context_name: str | None = None
    preferences: dict[str, Any] = field(default_factory=dict, hash=False)
    api_version: str = "v1"
    kind: str = "Config"
    path: Path | None = field(default=None, compare=False)

    def context_names(self) -> list[str]:
        """Return the context names in document order."""
        return [entry.name for entry in self.contexts]

    def resolve(self, name: str | None) -> ResolvedContext:
        """Look up a context and the user and cluster it references.

        The first entry with a matching name wins in each table.

        Args:
            name: The context name. None means no context was selected.

        Returns:
            The resolved context; its namespace defaults to ``default``.

        Raises:
            ContextNotFoundError: Naming which of the lookups failed.

        """
        if name is None:
            raise ContextNotFoundError(MissingReference.CURRENT_CONTEXT, None, self.path)

        entry = _find(self.contexts, name)
        if entry is None:
            raise ContextNotFoundError(MissingReference.CONTEXT, name, self.path)
        context: Context = entry.context

        user = _find(self.users, context.user)
        if user is None:
            raise ContextNotFoundError(MissingReference.USER, context.user, self.path)

        cluster = _find(self.clusters, context.cluster)
        if cluster is None:
            raise ContextNotFoundError(MissingReference.CLUSTER, context.cluster, self.path)

        return ResolvedContext(
            name=name,
            cluster=cluster.cluster,
            auth=user.auth,
            namespace=context.namespace or DEFAULT_NAMESPACE,
        )

    def require_current_context(self) -> ResolvedContext:
        """Resolve ``current-context``, raising ContextNotFoundError on any miss."""
        return self.resolve(self.current_context_name)

    def current_context(self) -> ResolvedContext | None:
        """Resolve ``current-context``.

        Returns:
            The resolved context, or None if current-context is unset or
            names a context, user or cluster that does not exist.

        """
        try:
            return self.require_current_context()
        except ContextNotFoundError as e:
            ic(e.reference, e.name)
            return None


def _find(entries: tuple, name: str) -> Any:
    return next((entry for entry in entries if entry.name == name), None)


def load_config(path: str | Path) -> KubernetesConfig:
    """Load and decode the kubeconfig at ``path``.

    Relative certificate and key paths inside the document are resolved
    against the directory containing the kubeconfig.

    Args:
        path: Location of the kubeconfig file.

    Returns:
        The decoded document.

    Raises:
        ConfigReadError: If the file cannot be opened or read.
        ConfigDeserializeError: If the content is not a valid kubeconfig.

    """
    path = Path(path).expanduser()
    try:
        with path.open("rb") as stream:
            content = stream.read()
    except OSError as err:
        raise ConfigReadError(path, err) from err

    try:
        return decode_config(content, base_dir=path.parent, path=path)
    except DecodeError as err:
        raise ConfigDeserializeError(path, str(err)) from err


def decode_config(
    content: bytes | str,
    *,
    base_dir: Path | None = None,
    path: Path | None = None,
) -> KubernetesConfig:
    """Decode kubeconfig YAML content.

    Args:
        content: The raw document.
        base_dir: Directory that relative file references are resolved against.
                  Defaults to the current working directory.
        path: Recorded on the result for diagnostics.

    Raises:
        DecodeError: If the content is not valid YAML or does not match the schema.

    """
    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise DecodeError("", f"malformed YAML: {err}") from err

    doc = _mapping(raw, "")
    base = base_dir if base_dir is not None else Path.cwd()

    return KubernetesConfig(
        api_version=_optional_str(doc, "apiVersion", "") or "v1",
        kind=_optional_str(doc, "kind", "") or "Config",
        clusters=tuple(
            _named(item, f"clusters[{i}]", "cluster", lambda v, loc: _decode_cluster(v, loc, base))
            for i, item in enumerate(_sequence(doc, "clusters", ""))
        ),
        contexts=tuple(
            _named(item, f"contexts[{i}]", "context", _decode_context)
            for i, item in enumerate(_sequence(doc, "contexts", ""))
        ),
        users=tuple(
            _named(item, f"users[{i}]", "user", lambda v, loc: _decode_auth(v, loc, base), optional=True)
            for i, item in enumerate(_sequence(doc, "users", ""))
        ),
        current_context_name=_optional_str(doc, "current-context", "") or None,
        preferences=dict(_mapping(doc.get("preferences") or {}, "preferences")),
        path=path,
    )


def _join(location: str, key: str | int) -> str:
    if isinstance(key, int):
        return f"{location}[{key}]"
    return f"{location}.{key}" if location else key


def _mapping(value: Any, location: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise DecodeError(location, f"expected a mapping, got {type(value).__name__}")
    return value


def _sequence(doc: Mapping[str, Any], key: str, location: str) -> list[Any]:
    value = doc.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise DecodeError(_join(location, key), f"expected a list, got {type(value).__name__}")
    return value


def _required_str(doc: Mapping[str, Any], key: str, location: str) -> str:
    if key not in doc or doc[key] is None:
        raise DecodeError(_join(location, key), "missing required field")
    value = doc[key]
    if not isinstance(value, str):
        raise DecodeError(_join(location, key), f"expected a string, got {type(value).__name__}")
    return value


def _optional_str(doc: Mapping[str, Any], key: str, location: str) -> str | None:
    if doc.get(key) is None:
        return None
    return _required_str(doc, key, location)


def _named(
    item: Any,
    location: str,
    body_key: str,
    decode: Callable[[Any, str], Any],
    *,
    optional: bool = False,
) -> Any:
    """Decode a ``{name: ..., <body_key>: {...}}`` entry into its Named* model."""
    entry = _mapping(item, location)
    name = _required_str(entry, "name", location)
    body = entry.get(body_key)
    if body is None and not optional:
        raise DecodeError(_join(location, body_key), "missing required field")
    value = decode(body if body is not None else {}, _join(location, body_key))

    match body_key:
        case "cluster":
            return NamedCluster(name=name, cluster=value)
        case "context":
            return NamedContext(name=name, context=value)
        case _:
            return NamedUser(name=name, auth=value)


def _material(
    doc: Mapping[str, Any],
    key: str,
    location: str,
    strategy: Callable[[str], ByteMaterial],
) -> ByteMaterial:
    text = _required_str(doc, key, location)
    try:
        return strategy(text)
    except DecodeError as err:
        raise DecodeError(_join(location, key), err.detail) from err


def _from_path(base: Path) -> Callable[[str], ByteMaterial]:
    def read(value: str) -> ByteMaterial:
        return ByteMaterial.from_path(base / Path(value).expanduser())

    return read


def _decode_cluster(value: Any, location: str, base: Path) -> Cluster:
    doc = _mapping(value, location)

    skip_verify = doc.get("insecure-skip-tls-verify", False)
    if skip_verify is None:
        skip_verify = False
    if not isinstance(skip_verify, bool):
        raise DecodeError(_join(location, "insecure-skip-tls-verify"), "expected a boolean")

    has_file = doc.get(CertificateSource.FILE.value) is not None
    has_data = doc.get(CertificateSource.EMBEDDED.value) is not None
    authority: CertificateAuthority | None = None
    if has_file and has_data:
        raise DecodeError(
            location,
            f"only one of {CertificateSource.FILE.value} and {CertificateSource.EMBEDDED.value} may be set",
        )
    if has_file:
        authority = CertificateAuthority(
            source=CertificateSource.FILE,
            certificate=_material(doc, CertificateSource.FILE.value, location, _from_path(base)),
        )
    elif has_data:
        authority = CertificateAuthority(
            source=CertificateSource.EMBEDDED,
            certificate=_material(doc, CertificateSource.EMBEDDED.value, location, ByteMaterial.from_base64),
        )

    return Cluster(
        server=_required_str(doc, "server", location),
        insecure_skip_tls_verify=skip_verify,
        certificate_authority=authority,
    )


def _decode_context(value: Any, location: str) -> Context:
    doc = _mapping(value, location)
    return Context(
        cluster=_required_str(doc, "cluster", location),
        user=_required_str(doc, "user", location),
        namespace=_optional_str(doc, "namespace", location) or None,
    )


def _decode_auth(value: Any, location: str, base: Path) -> Auth:
    """Pick the credential kind from the keys present in a user entry.

    Kinds are checked in a fixed order and the first complete one wins.
    A certificate without its key (or the reverse) is an error; a user
    with no recognized credential decodes to NullAuth.
    """
    doc = _mapping(value, location)

    def present(key: str) -> bool:
        return doc.get(key) is not None

    if present("username") and present("password"):
        return PlainAuth(
            username=_required_str(doc, "username", location),
            password=_required_str(doc, "password", location),
        )
    if present("token"):
        return TokenAuth(token=_required_str(doc, "token", location))
    if present("client-certificate") or present("client-key"):
        _require_pair(doc, "client-certificate", "client-key", location)
        read = _from_path(base)
        return CertificateFileAuth(
            certificate=_material(doc, "client-certificate", location, read),
            key=_material(doc, "client-key", location, read),
        )
    if present("client-certificate-data") or present("client-key-data"):
        _require_pair(doc, "client-certificate-data", "client-key-data", location)
        return CertificateEmbeddedAuth(
            certificate=_material(doc, "client-certificate-data", location, ByteMaterial.from_base64),
            key=_material(doc, "client-key-data", location, ByteMaterial.from_base64),
        )
    if present("exec"):
        return ExecAuth(exec=decode_exec_descriptor(doc["exec"], _join(location, "exec")))
    return NullAuth()


def _require_pair(doc: Mapping[str, Any], first: str, second: str, location: str) -> None:
    for key, other in ((first, second), (second, first)):
        if doc.get(key) is None:
            raise DecodeError(_join(location, key), f"required together with {other}")


def decode_exec_descriptor(value: Any, location: str) -> ExecAuthDescriptor:
    """Decode the ``exec`` block of a user entry.

    ``env`` may be a plain mapping or the kubeconfig list of
    ``{name, value}`` objects.
    """
    doc = _mapping(value, location)

    args = _sequence(doc, "args", location)
    for i, arg in enumerate(args):
        if not isinstance(arg, str):
            raise DecodeError(_join(_join(location, "args"), i), "expected a string")

    return ExecAuthDescriptor(
        api_version=_required_str(doc, "apiVersion", location),
        command=_required_str(doc, "command", location),
        args=tuple(args),
        env=_decode_env(doc.get("env"), _join(location, "env")),
    )


def _decode_env(value: Any, location: str) -> dict[str, str]:
    if value is None:
        return {}
    if isinstance(value, list):
        env: dict[str, str] = {}
        for i, item in enumerate(value):
            entry = _mapping(item, _join(location, i))
            name = _required_str(entry, "name", _join(location, i))
            if entry.get("value") is None:
                raise DecodeError(_join(_join(location, i), "value"), "missing required field")
            env[name] = _env_value(entry["value"], _join(_join(location, i), "value"))
        return env
    doc = _mapping(value, location)
    for key in doc:
        if not isinstance(key, str):
            raise DecodeError(_join(location, str(key)), "expected a string variable name")
    return {key: _env_value(item, _join(location, key)) for key, item in doc.items()}


def _env_value(value: Any, location: str) -> str:
    if isinstance(value, str):
        return value
    # YAML reads unquoted off/yes/8080 as bool or number
    raise DecodeError(
        location,
        f"expected a string, got {type(value).__name__}; quote the value to keep it as text",
    )
