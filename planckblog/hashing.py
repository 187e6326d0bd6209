"""Content hashers used to name attachments."""

from __future__ import annotations

import abc
import hashlib
from typing import Union


class Hasher(abc.ABC):
    """Something that hashes bytes into a lowercase hex string."""

    @abc.abstractmethod
    def hash_to_hex_str(self, data: Union[bytes, str]) -> str:
        """Hash the data and return the lowercase hex digest."""


class Sha256HalfHasher(Hasher):
    """The first half of the SHA-256 digest."""

    def hash_to_hex_str(self, data: Union[bytes, str]) -> str:
        if isinstance(data, str):
            data = data.encode("utf-8")
        return hashlib.sha256(data).hexdigest()[:32]