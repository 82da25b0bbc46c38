"""
identity.py — tiny in-memory identity store (identity -> secret / password).

Sessions never hardcode a secret; they ask the store for the claimed identity.
The demo deployment is one principal, "admin", whose HMAC secret and
plaintext password are both "pass123" (see IdentityStore.default()).

File format for load()/save() (JSON, UTF-8):
    {
      "default": "admin",
      "principals": {
        "admin": {"secret": "pass123", "password": "pass123"}
      }
    }

Secrets or passwords that are not valid UTF-8 are written as hex under
"secret_hex" / "password_hex" instead.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from .crypto import encode_secret
from .messages import Credential

DEFAULT_IDENTITY = "admin"
DEFAULT_SECRET = "pass123"


def _write_field(name: str, value: bytes) -> Dict[str, str]:
    """UTF-8 text goes under `name`; anything else is stored as hex under `name_hex`."""
    try:
        return {name: value.decode("utf-8")}
    except UnicodeDecodeError:
        return {f"{name}_hex": value.hex()}


def _read_field(entry: Dict[str, Any], name: str) -> Optional[bytes]:
    if name in entry:
        if not isinstance(entry[name], str):
            raise ValueError(f"'{name}' must be a string")
        return encode_secret(entry[name])
    if f"{name}_hex" in entry:
        try:
            return bytes.fromhex(entry[f"{name}_hex"])
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Bad {name}_hex value: {exc}") from exc
    return None


@dataclass(frozen=True)
class Principal:
    identity: str
    secret: bytes
    password: bytes

    @property
    def credential(self) -> Credential:
        return Credential(self.identity.encode("utf-8"), self.password)


class IdentityStore:
    """Lookup collaborator injected into server sessions. Read-only once serving."""

    def __init__(self, default_identity: str = DEFAULT_IDENTITY) -> None:
        self._principals: Dict[str, Principal] = {}
        self.default_identity = default_identity

    def add(self, identity: str, secret: Union[str, bytes], password: Union[str, bytes, None] = None) -> Principal:
        """Register (or replace) a principal. Password defaults to the secret."""
        if not identity:
            raise ValueError("Identity must be a non-empty string")
        secret_b = encode_secret(secret)
        password_b = secret_b if password is None else encode_secret(password)
        p = Principal(identity=identity, secret=secret_b, password=password_b)
        self._principals[identity] = p
        return p

    def get(self, identity: Optional[str]) -> Optional[Principal]:
        """None -> the default principal. Unknown -> None."""
        if identity is None:
            identity = self.default_identity
        return self._principals.get(identity)

    def __contains__(self, identity: str) -> bool:
        return identity in self._principals

    def __iter__(self) -> Iterator[Principal]:
        return iter(self._principals.values())

    def __len__(self) -> int:
        return len(self._principals)

    # -------------
    # Constructors
    # -------------

    @classmethod
    def default(cls) -> "IdentityStore":
        store = cls(DEFAULT_IDENTITY)
        store.add(DEFAULT_IDENTITY, DEFAULT_SECRET, DEFAULT_SECRET)
        return store

    @classmethod
    def single(cls, identity: str, secret: Union[str, bytes], password: Union[str, bytes, None] = None) -> "IdentityStore":
        store = cls(identity)
        store.add(identity, secret, password)
        return store

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "IdentityStore":
        if not isinstance(data, dict):
            raise ValueError("Identity file must hold a JSON object")
        principals = data.get("principals")
        if not isinstance(principals, dict) or not principals:
            raise ValueError("Identity file needs a non-empty 'principals' object")

        store = cls(data.get("default") or next(iter(principals)))
        for identity, entry in principals.items():
            if not isinstance(entry, dict):
                raise ValueError(f"Principal {identity!r} must be an object")
            secret = _read_field(entry, "secret")
            if secret is None:
                raise ValueError(f"Principal {identity!r} has no 'secret'")
            store.add(identity, secret, _read_field(entry, "password"))

        if store.default_identity not in store:
            raise ValueError(f"Default identity {store.default_identity!r} is not a principal")
        return store

    @classmethod
    def load(cls, path: Union[str, Path]) -> "IdentityStore":
        """Read a JSON identities file. Will raise ValueError on bad shape/JSON."""
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid identities file {path}: {exc}") from exc
        return cls.from_mapping(data)

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "default": self.default_identity,
            "principals": {
                p.identity: {**_write_field("secret", p.secret), **_write_field("password", p.password)}
                for p in self
            },
        }

    def save(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_mapping(), f, indent=2, sort_keys=True)
