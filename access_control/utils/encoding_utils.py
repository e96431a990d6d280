"""
Face encoding utilities for access control.

This module provides functions for:
- Serializing 128-value face encodings to their transport text form
- Decoding transport text back into numpy vectors
- Validating encodings before they reach the matcher

The transport form is base64 over a comma-separated decimal rendering of
each value. Values are rendered with ``repr`` so decoding reproduces the
original floats exactly.
"""

import base64
import binascii
import logging
from typing import Sequence, Union

import numpy as np

logger = logging.getLogger(__name__)

ENCODING_DIMENSION = 128
ENCODING_MIN_VALUE = -1.0
ENCODING_MAX_VALUE = 1.0


class EncodingError(Exception):
    """Base exception for face encoding errors."""
    pass


class FormatError(EncodingError):
    """Raised when a face encoding is malformed or out of range."""
    pass


def _as_vector(values: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    """Coerce values to a finite 1-D float64 vector of the encoding dimension."""
    try:
        vector = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise FormatError(f"Encoding values must be numeric: {e}")

    if vector.ndim != 1 or vector.shape[0] != ENCODING_DIMENSION:
        raise FormatError(
            f"Encoding must contain exactly {ENCODING_DIMENSION} values, got shape {vector.shape}"
        )

    if not np.isfinite(vector).all():
        raise FormatError("Encoding contains NaN or infinite values")

    return vector


def encode_face_encoding(values: Union[Sequence[float], np.ndarray]) -> str:
    """
    Serialize a face encoding to its transport text form.

    Args:
        values: 128 finite real numbers

    Returns:
        Base64 text of the comma-separated values

    Raises:
        FormatError: If the values are not 128 finite numbers
    """
    vector = _as_vector(values)
    joined = ",".join(repr(float(value)) for value in vector)
    return base64.b64encode(joined.encode("ascii")).decode("ascii")


def decode_face_encoding(text: str) -> np.ndarray:
    """
    Decode transport text into a 128-dimensional face encoding.

    Args:
        text: Base64 text produced by encode_face_encoding (or compatible)

    Returns:
        numpy.ndarray: float64 vector of 128 values

    Raises:
        FormatError: If the text is not valid base64 or does not hold
            exactly 128 finite numbers
    """
    if not isinstance(text, str) or not text:
        raise FormatError("Encoding text is empty")

    try:
        decoded = base64.b64decode(text, validate=True).decode("ascii")
    except (binascii.Error, ValueError) as e:
        raise FormatError(f"Encoding is not valid base64 text: {e}")

    parts = decoded.split(",")
    if len(parts) != ENCODING_DIMENSION:
        raise FormatError(
            f"Encoding must contain exactly {ENCODING_DIMENSION} values, got {len(parts)}"
        )

    try:
        values = [float(part) for part in parts]
    except ValueError as e:
        raise FormatError(f"Encoding contains a non-numeric value: {e}")

    return _as_vector(values)


def is_in_range(vector: np.ndarray) -> bool:
    """Check that every value lies in the closed encoding range."""
    return bool(
        np.all(vector >= ENCODING_MIN_VALUE) and np.all(vector <= ENCODING_MAX_VALUE)
    )


def validate_face_encoding(text: str) -> bool:
    """
    Validate a face encoding in transport form.

    Args:
        text: Encoding text to validate

    Returns:
        bool: True if the text decodes and every value is in [-1, 1]
    """
    try:
        vector = decode_face_encoding(text)
    except FormatError as e:
        logger.debug(f"Face encoding failed to decode: {e}")
        return False

    return is_in_range(vector)


def parse_face_encoding(text: str) -> np.ndarray:
    """
    Decode and range-check a face encoding submitted by a client.

    Raises:
        FormatError: If the encoding is malformed or out of range
    """
    vector = decode_face_encoding(text)
    if not is_in_range(vector):
        raise FormatError(
            f"Encoding values must lie in [{ENCODING_MIN_VALUE}, {ENCODING_MAX_VALUE}]"
        )
    return vector
