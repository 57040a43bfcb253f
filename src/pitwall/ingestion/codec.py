"""Decoding of compressed live-timing payloads.

Topics published under a ``.z`` stream name carry their JSON as a base64
string of raw-deflate compressed UTF-8 text.
"""

from __future__ import annotations

import base64
import binascii
import json
import zlib
from typing import Any

from pitwall.exceptions import PayloadDecodeError

DEFAULT_MAX_OUTPUT_BYTES = 50 * 1024 * 1024


def inflate_base64(payload: str, *, max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES) -> str:
    """Inflate a base64 raw-deflate payload into text.

    Parameters
    ----------
    payload : str
        Base64-encoded, raw-deflate compressed bytes.
    max_output_bytes : int
        Upper bound on the inflated size.

    Returns
    -------
    str
        Decompressed UTF-8 text.

    Raises
    ------
    PayloadDecodeError
        If the payload is not valid base64/deflate, exceeds
        *max_output_bytes*, or is not UTF-8.
    """
    try:
        compressed = base64.b64decode(payload, validate=False)
        inflater = zlib.decompressobj(-zlib.MAX_WBITS)
        inflated = inflater.decompress(compressed, max_output_bytes + 1)
        if len(inflated) > max_output_bytes:
            raise PayloadDecodeError(f"inflated payload exceeds {max_output_bytes} bytes")
        inflated += inflater.flush()
        return inflated.decode("utf-8")
    except PayloadDecodeError:
        raise
    except (binascii.Error, zlib.error, UnicodeDecodeError) as exc:
        raise PayloadDecodeError(f"payload inflate failed: {exc}") from exc


def decode_compressed_json(payload: str, *, max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES) -> Any:
    """Inflate and JSON-decode a compressed payload."""
    text = inflate_base64(payload, max_output_bytes=max_output_bytes)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise PayloadDecodeError(f"inflated payload is not JSON: {exc}") from exc


def deflate_base64(data: Any) -> str:
    """Encode *data* the way the feed publishes ``.z`` topics."""
    deflater = zlib.compressobj(wbits=-zlib.MAX_WBITS)
    raw = deflater.compress(json.dumps(data).encode("utf-8")) + deflater.flush()
    return base64.b64encode(raw).decode("ascii")
