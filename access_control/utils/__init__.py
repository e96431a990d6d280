# Utilities module

from .encoding_utils import (
    ENCODING_DIMENSION,
    EncodingError,
    FormatError,
    decode_face_encoding,
    encode_face_encoding,
    parse_face_encoding,
    validate_face_encoding,
)

__all__ = [
    "ENCODING_DIMENSION",
    "EncodingError",
    "FormatError",
    "decode_face_encoding",
    "encode_face_encoding",
    "parse_face_encoding",
    "validate_face_encoding",
]
