"""Opaque holders for certificate and key bytes.

Kubeconfig certificates and keys arrive either as a path to a file, as
base64 text embedded in the document, or (from exec plugins) as literal
PEM text. Whatever the source, the bytes end up in a ByteMaterial, whose
string representations only ever report the length of the payload.
"""

import base64
import binascii
import hmac
from pathlib import Path

from kubeconfig_client.exceptions import DecodeError


class ByteMaterial:
    """Immutable secret or certificate bytes that never print their content.

    Equality is identity; use :meth:`matches` for an explicit comparison
    of the payloads.
    """

    __slots__ = ("_data",)

    def __init__(self, data: bytes) -> None:
        object.__setattr__(self, "_data", bytes(data))

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("ByteMaterial is immutable")

    def __reduce__(self) -> tuple:
        return (type(self), (self._data,))

    def __copy__(self) -> "ByteMaterial":
        return self

    def __deepcopy__(self, memo: dict) -> "ByteMaterial":
        return self

    def __repr__(self) -> str:
        return f"ByteMaterial(<{len(self._data)} bytes>)"

    __str__ = __repr__

    def __len__(self) -> int:
        return len(self._data)

    def __bytes__(self) -> bytes:
        return self._data

    def matches(self, other: "ByteMaterial") -> bool:
        """Compare payloads in constant time."""
        return hmac.compare_digest(self._data, bytes(other))

    @classmethod
    def from_path(cls, path: str | Path) -> "ByteMaterial":
        """Read the whole file at ``path``.

        Raises:
            DecodeError: If the file cannot be opened or read.

        """
        try:
            with open(path, "rb") as f:
                return cls(f.read())
        except OSError as err:
            raise DecodeError("", f"unable to read file at {path}: {err}") from err

    @classmethod
    def from_base64(cls, text: str) -> "ByteMaterial":
        """Decode standard base64 text.

        Raises:
            DecodeError: If the text is not valid base64.

        """
        # Wrapped base64 is common in hand-edited kubeconfigs
        compact = "".join(text.split())
        try:
            return cls(base64.b64decode(compact, validate=True))
        except (binascii.Error, ValueError) as err:
            raise DecodeError("", f"unable to decode base64 string: {err}") from err

    @classmethod
    def from_text(cls, text: str) -> "ByteMaterial":
        """Use the UTF-8 bytes of ``text`` verbatim."""
        return cls(text.encode("utf-8"))
