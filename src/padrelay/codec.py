"""
Compact storage form for bundle fields: UTF-8 text, gzip compressed.
"""

import gzip


def encode(text: str) -> bytes:
    # mtime is pinned so identical text always yields identical bytes
    return gzip.compress(text.encode("utf-8"), mtime=0)


def decode(data: bytes) -> str:
    return gzip.decompress(data).decode("utf-8")
