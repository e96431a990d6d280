"""
Matching service for comparing face encodings against enrolled identities.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

import numpy as np

from access_control.models.internal_models import Identity, MatchResult
from access_control.utils.encoding_utils import (
    ENCODING_DIMENSION,
    FormatError,
    decode_face_encoding,
)

logger = logging.getLogger(__name__)

MAX_DISTANCE = 1.0
DEFAULT_THRESHOLD = 0.6

# Lower bounds of each quality label, checked from the top down
QUALITY_LEVELS = (
    (0.9, "Excellent"),
    (0.8, "Very Good"),
    (0.7, "Good"),
    (0.6, "Fair"),
)
LOWEST_QUALITY = "Poor"


def euclidean_distance(encoding1: np.ndarray, encoding2: np.ndarray) -> float:
    """
    Compute the Euclidean distance between two face encodings.

    Stored templates are not trusted to stay well formed, so any operand
    that is not a finite 128-value vector yields MAX_DISTANCE instead of
    an exception.

    Args:
        encoding1: First encoding vector
        encoding2: Second encoding vector

    Returns:
        float: L2 distance, >= 0
    """
    try:
        a = np.asarray(encoding1, dtype=np.float64)
        b = np.asarray(encoding2, dtype=np.float64)
    except (TypeError, ValueError):
        return MAX_DISTANCE

    if a.shape != (ENCODING_DIMENSION,) or b.shape != (ENCODING_DIMENSION,):
        logger.debug(f"Encoding shapes don't match: {a.shape} vs {b.shape}")
        return MAX_DISTANCE

    if not (np.isfinite(a).all() and np.isfinite(b).all()):
        return MAX_DISTANCE

    return float(np.linalg.norm(a - b))


def distance_to_confidence(distance: float) -> float:
    """Convert a distance to a confidence in [0, 1]."""
    return float(np.clip(1.0 - distance, 0.0, 1.0))


def classify_match_quality(confidence: float) -> str:
    """
    Bucket a confidence score into a human-readable quality label.

    Args:
        confidence: Match confidence in [0, 1]

    Returns:
        str: "Excellent", "Very Good", "Good", "Fair" or "Poor"
    """
    for lower_bound, label in QUALITY_LEVELS:
        if confidence >= lower_bound:
            return label
    return LOWEST_QUALITY


@dataclass(frozen=True)
class FaceMatcher:
    """
    Stateless best-match search over a candidate set.

    Compares the input against every candidate with ``metric`` and keeps the
    single closest one; ties keep the candidate seen first.
    """

    threshold: float = DEFAULT_THRESHOLD
    metric: Callable[[np.ndarray, np.ndarray], float] = euclidean_distance

    def __post_init__(self):
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"Threshold must be between 0.0 and 1.0, got: {self.threshold}")

    def _candidate_distance(self, input_encoding: np.ndarray, candidate: Identity) -> float:
        try:
            stored = decode_face_encoding(candidate.face_encoding)
        except FormatError as e:
            logger.warning(f"Stored encoding for identity {candidate.id} is malformed: {e}")
            return MAX_DISTANCE
        return self.metric(input_encoding, stored)

    def find_best_match(
        self,
        input_encoding: np.ndarray,
        candidates: Iterable[Identity]
    ) -> Optional[MatchResult]:
        """
        Find the closest candidate whose confidence clears the threshold.

        Args:
            input_encoding: Validated 128-value encoding of the presented sample
            candidates: Eligible identities, in scan order

        Returns:
            MatchResult for the closest candidate, or None when there are no
            usable candidates or the closest one falls below the threshold
        """
        best_identity: Optional[Identity] = None
        min_distance = float("inf")
        compared = 0

        for candidate in candidates:
            if not candidate.face_encoding:
                continue

            distance = self._candidate_distance(input_encoding, candidate)
            compared += 1

            if distance < min_distance:
                min_distance = distance
                best_identity = candidate

        if best_identity is None:
            logger.debug("No candidates with usable encodings")
            return None

        confidence = distance_to_confidence(min_distance)
        is_match = confidence >= self.threshold

        logger.debug(
            f"Best match over {compared} candidates: identity={best_identity.id}, "
            f"distance={min_distance:.4f}, confidence={confidence:.4f}, "
            f"threshold={self.threshold}, match={is_match}"
        )

        if not is_match:
            return None

        return MatchResult(identity=best_identity, distance=min_distance, confidence=confidence)
