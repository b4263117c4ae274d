"""
Streaming XXH64 content hashing.

Digests are 16-character lower-case hex strings of XXH64 with seed 0, the same
encoding the manifest generator writes into the "xxhash" field.
"""

from pathlib import Path

import xxhash

from .constants import CHUNK_SIZE


class HashStream:
    """
    Incremental content hash over successive chunks of one file.

    Call update() with each chunk in order, then finalize() once.
    """

    def __init__(self):
        self._hasher = xxhash.xxh64(seed=0)
        self._finalized = False
        self.bytes_hashed = 0

    def update(self, chunk: bytes):
        if self._finalized:
            raise RuntimeError("HashStream already finalized")
        self._hasher.update(chunk)
        self.bytes_hashed += len(chunk)

    def finalize(self) -> str:
        if self._finalized:
            raise RuntimeError("HashStream already finalized")
        self._finalized = True
        # hexdigest is big-endian, i.e. the uint64 value zero-padded to 16 chars
        return self._hasher.hexdigest()


def hash_file(path: Path, chunk_size: int = CHUNK_SIZE, cancel=None) -> str:
    """
    Hash a file in bounded chunks; memory use is O(chunk_size).

    cancel, if given, is checked before every chunk (anything with a
    raise_if_cancelled() method, e.g. a CancelToken).
    """
    stream = HashStream()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            if cancel is not None:
                cancel.raise_if_cancelled()
            stream.update(chunk)
    return stream.finalize()


def hash_bytes(data: bytes) -> str:
    stream = HashStream()
    stream.update(data)
    return stream.finalize()
