"""
Tests for face encoding utilities.
"""

import base64

import numpy as np
import pytest

from access_control.utils.encoding_utils import (
    ENCODING_DIMENSION,
    FormatError,
    decode_face_encoding,
    encode_face_encoding,
    parse_face_encoding,
    validate_face_encoding,
)

from conftest import random_vector, seeded_vector


def _text(values) -> str:
    return base64.b64encode(",".join(values).encode("ascii")).decode("ascii")


class TestEncodeDecode:
    """Test cases for the transport codec."""

    def test_round_trip_is_exact(self, rng):
        """Decoding an encoded vector reproduces every float exactly."""
        for _ in range(5):
            vector = random_vector(rng)
            decoded = decode_face_encoding(encode_face_encoding(vector))
            assert np.array_equal(decoded, vector)

    def test_encode_is_deterministic(self):
        vector = seeded_vector("john_doe")
        assert encode_face_encoding(vector) == encode_face_encoding(list(vector))

    def test_decode_accepts_fixed_decimal_text(self):
        """Encodings rendered with six decimals (as demo clients do) decode."""
        text = _text(["0.500000"] * ENCODING_DIMENSION)
        decoded = decode_face_encoding(text)

        assert decoded.shape == (ENCODING_DIMENSION,)
        assert decoded.dtype == np.float64
        assert np.all(decoded == 0.5)

    def test_encode_rejects_wrong_length(self):
        with pytest.raises(FormatError, match="exactly 128 values"):
            encode_face_encoding([0.0] * 127)

    def test_encode_rejects_non_finite(self):
        values = [0.0] * ENCODING_DIMENSION
        values[3] = float("nan")
        with pytest.raises(FormatError, match="NaN or infinite"):
            encode_face_encoding(values)

    def test_decode_rejects_invalid_base64(self):
        with pytest.raises(FormatError, match="base64"):
            decode_face_encoding("not base64!!")

    def test_decode_rejects_empty_text(self):
        with pytest.raises(FormatError, match="empty"):
            decode_face_encoding("")

    def test_decode_rejects_wrong_count(self):
        with pytest.raises(FormatError, match="got 3"):
            decode_face_encoding(_text(["0.1", "0.2", "0.3"]))

    def test_decode_rejects_non_numeric_value(self):
        values = ["0.1"] * ENCODING_DIMENSION
        values[10] = "abc"
        with pytest.raises(FormatError, match="non-numeric"):
            decode_face_encoding(_text(values))

    def test_decode_rejects_infinity(self):
        values = ["0.1"] * ENCODING_DIMENSION
        values[0] = "inf"
        with pytest.raises(FormatError):
            decode_face_encoding(_text(values))


class TestValidation:
    """Test cases for encoding validation."""

    def test_valid_encoding(self, sample_encoding):
        assert validate_face_encoding(sample_encoding) is True

    def test_range_is_inclusive(self):
        values = ["1"] * (ENCODING_DIMENSION // 2) + ["-1"] * (ENCODING_DIMENSION // 2)
        assert validate_face_encoding(_text(values)) is True

    def test_out_of_range_value_is_invalid(self):
        values = ["0.0"] * ENCODING_DIMENSION
        values[-1] = "1.000001"
        text = _text(values)

        assert validate_face_encoding(text) is False
        # Still decodes: the codec only checks shape and finiteness
        assert decode_face_encoding(text)[-1] == pytest.approx(1.000001)

    def test_malformed_encoding_is_invalid(self):
        assert validate_face_encoding("%%%") is False
        assert validate_face_encoding(_text(["0.1"] * 129)) is False

    def test_parse_raises_for_out_of_range(self):
        values = ["-1.5"] + ["0.0"] * (ENCODING_DIMENSION - 1)
        with pytest.raises(FormatError, match="must lie in"):
            parse_face_encoding(_text(values))

    def test_parse_returns_vector(self, sample_vector, sample_encoding):
        assert np.array_equal(parse_face_encoding(sample_encoding), sample_vector)
