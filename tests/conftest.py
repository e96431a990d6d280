"""
Shared fixtures for the access control tests.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional
from unittest.mock import AsyncMock, Mock

import numpy as np
import pytest

from access_control.models.internal_models import Identity, IdentityType
from access_control.utils.encoding_utils import ENCODING_DIMENSION, encode_face_encoding


def random_vector(rng: np.random.Generator) -> np.ndarray:
    """Random in-range encoding vector."""
    return rng.uniform(-1.0, 1.0, ENCODING_DIMENSION)


def seeded_vector(seed: str) -> np.ndarray:
    """Deterministic encoding vector derived from the bytes of ``seed``."""
    data = seed.encode("utf-8")
    return np.array([(data[i % len(data)] / 255) * 2 - 1 for i in range(ENCODING_DIMENSION)])


def offset_vector(base: np.ndarray, distance: float) -> np.ndarray:
    """Copy of ``base`` moved by ``distance`` along its first component."""
    moved = base.copy()
    moved[0] += distance if moved[0] + distance <= 1.0 else -distance
    return moved


def make_identity(
    vector: Optional[np.ndarray] = None,
    card_id: Optional[str] = None,
    identity_type: IdentityType = IdentityType.PERMANENT,
    expires_at: Optional[datetime] = None,
    face_encoding: Optional[str] = None,
    name: str = "Test User"
) -> Identity:
    """Build an identity with an encoded vector."""
    identity_id = str(uuid.uuid4())
    if face_encoding is None:
        face_encoding = encode_face_encoding(vector if vector is not None else np.zeros(ENCODING_DIMENSION))
    return Identity(
        id=identity_id,
        card_id=card_id or f"CARD-{identity_id[:8]}",
        name=name,
        face_encoding=face_encoding,
        identity_type=identity_type,
        expires_at=expires_at,
        created_at=datetime.now(timezone.utc)
    )


@pytest.fixture
def rng():
    """Seeded random generator so failures are reproducible."""
    return np.random.default_rng(1234)


@pytest.fixture
def sample_vector(rng):
    return random_vector(rng)


@pytest.fixture
def sample_encoding(sample_vector):
    return encode_face_encoding(sample_vector)


@pytest.fixture
def mock_db_manager():
    """Create a mock database manager."""
    db_manager = Mock()
    db_manager.identities = Mock()
    db_manager.scan_events = Mock()
    db_manager.identities.load_eligible_candidates = AsyncMock(return_value=[])
    db_manager.scan_events.append_scan_event = AsyncMock(return_value="1")
    db_manager.health_check = AsyncMock(return_value=True)
    return db_manager
