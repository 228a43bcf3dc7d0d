"""
Hash registry -- name to digest capability lookup.

Archives are checksummed with a user-selected algorithm and the
algorithm's canonical name travels with the object as metadata. The
registry is the single place that knows which names are valid.

Names follow the lowercase convention already used for stored caches
(``sha256``, ``sha512t_256``, ``blake2b_256`` ...). Algorithms that only
OpenSSL provides (``ripemd160``, ``md4``) are registered when the linked
OpenSSL offers them. Tiger, Skein, Keccak, MD2 and the parallel BLAKE2
variants have no hashlib implementation and are not registered, so
objects written with them report corrupt metadata on restore.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from functools import partial
from typing import BinaryIO, Callable, Iterable, Optional

from .errors import UnsupportedHashError

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class HashAlgorithm:
    """Registry entry pairing a canonical name with a hash constructor.

    Attributes:
        name: Lowercase canonical name, also stored as object metadata.
        factory: Zero-argument callable returning a fresh hashlib object.
    """

    name: str
    factory: Callable[[], "hashlib._Hash"]

    def new(self):
        """Return a fresh incremental hash object."""
        return self.factory()

    def compute(self, stream: BinaryIO) -> str:
        """Hash a byte stream to exhaustion.

        Args:
            stream: Readable binary stream.

        Returns:
            Hex-encoded digest.
        """
        h = self.new()
        for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
            h.update(chunk)
        return h.hexdigest()


def _blake2(kind: str, bits: int) -> Callable[[], "hashlib._Hash"]:
    constructor = hashlib.blake2b if kind == "b" else hashlib.blake2s
    return partial(constructor, digest_size=bits // 8)


def _named(name: str) -> Callable[[], "hashlib._Hash"]:
    return getattr(hashlib, name)


def _openssl(name: str) -> Optional[Callable[[], "hashlib._Hash"]]:
    try:
        hashlib.new(name)
    except ValueError:
        return None
    return partial(hashlib.new, name)


def _available(
    entries: Iterable[tuple[str, Optional[Callable[[], "hashlib._Hash"]]]],
) -> tuple[HashAlgorithm, ...]:
    return tuple(HashAlgorithm(name, factory) for name, factory in entries if factory)


DEFAULT_ALGORITHMS: tuple[HashAlgorithm, ...] = _available([
    ("sha256", _named("sha256")),
    ("sha512", _named("sha512")),
    ("sha512t_256", _openssl("sha512_256")),
    ("sha512t_224", _openssl("sha512_224")),
    ("sha384", _named("sha384")),
    ("sha3_512", _named("sha3_512")),
    ("sha3_384", _named("sha3_384")),
    ("sha3_256", _named("sha3_256")),
    ("sha3_224", _named("sha3_224")),
    ("sha224", _named("sha224")),
    ("sha1", _named("sha1")),
    ("ripemd160", _openssl("ripemd160")),
    ("md5", _named("md5")),
    ("md4", _openssl("md4")),
    ("blake2s_256", _blake2("s", 256)),
    ("blake2s_224", _blake2("s", 224)),
    ("blake2s_160", _blake2("s", 160)),
    ("blake2b_512", _blake2("b", 512)),
    ("blake2b_384", _blake2("b", 384)),
    ("blake2b_256", _blake2("b", 256)),
    ("blake2b_224", _blake2("b", 224)),
    ("blake2b_160", _blake2("b", 160)),
])


class HashRegistry:
    """Ordered, immutable collection of supported hash algorithms."""

    def __init__(self, algorithms: Iterable[HashAlgorithm] = DEFAULT_ALGORITHMS):
        """Build the registry.

        Args:
            algorithms: Entries in priority order.

        Raises:
            ValueError: If two entries share a canonical name, or a name
                is not lowercase.
        """
        entries = tuple(algorithms)
        seen: set[str] = set()
        for entry in entries:
            if entry.name != entry.name.lower():
                raise ValueError(f"Hash name must be lowercase: {entry.name}")
            if entry.name in seen:
                raise ValueError(f"Duplicate hash algorithm: {entry.name}")
            seen.add(entry.name)
        self._algorithms = entries

    @property
    def names(self) -> list[str]:
        """Canonical names of every registered algorithm, in priority order."""
        return [a.name for a in self._algorithms]

    def find(self, name: str) -> Optional[HashAlgorithm]:
        """Case-insensitive lookup returning None on miss."""
        wanted = name.lower()
        for entry in self._algorithms:
            if entry.name == wanted:
                return entry
        return None

    def resolve(self, name: str) -> HashAlgorithm:
        """Resolve a name to an algorithm.

        Args:
            name: Algorithm name, any case.

        Returns:
            The matching registry entry.

        Raises:
            UnsupportedHashError: Carrying the complete list of valid names.
        """
        entry = self.find(name)
        if entry is None:
            raise UnsupportedHashError(name, self.names)
        return entry

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.find(name) is not None

    def __len__(self) -> int:
        return len(self._algorithms)


default_registry = HashRegistry()
