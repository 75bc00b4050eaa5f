import lzma
import json
import base64
from typing import Any


def encode_value(value: Any) -> str:
    """
    Lossless, deterministic encoding: JSON -> lzma compress -> base64 encode.
    Keys are sorted so equal values always encode to the same string.
    """
    raw = json.dumps(value, ensure_ascii=False, sort_keys=True)
    compressed = lzma.compress(raw.encode("utf-8"), preset=6)
    return base64.b64encode(compressed).decode("ascii")


def decode_value(encoded_data: str) -> Any:
    """
    Decode base64 -> lzma decompress -> JSON value.
    """
    try:
        compressed = base64.b64decode(encoded_data.encode("ascii"), validate=True)
        raw = lzma.decompress(compressed).decode("utf-8")
        return json.loads(raw)
    except Exception as e:
        raise ValueError(f"Decoding stored value failed: {e}")
