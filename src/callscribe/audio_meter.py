"""Audio level calculations shared by the frame analysers."""

import numpy as np
from numpy.typing import NDArray


def calculate_rms(audio_data: NDArray[np.float32]) -> float:
    """Calculate RMS (Root Mean Square) level.

    Args:
        audio_data: Audio samples as float32 array

    Returns:
        RMS value (0.0 to 1.0 range for normalized audio)
    """
    if audio_data.size == 0:
        return 0.0

    # Flatten to mono if stereo
    if audio_data.ndim > 1:
        audio_data = audio_data.mean(axis=1)

    return float(np.sqrt(np.mean(np.square(audio_data, dtype=np.float64))))


def linear_to_db(linear: float, reference_db: float = -120.0) -> float:
    """Convert linear amplitude to decibels.

    Args:
        linear: Linear amplitude value
        reference_db: Floor returned for silence (and the minimum result)

    Returns:
        Value in decibels, 20*log10(linear), never below reference_db
    """
    if linear <= 0:
        return reference_db

    db = 20 * np.log10(linear)
    return float(max(db, reference_db))


def to_mono(audio_data: NDArray[np.float32]) -> NDArray[np.float32]:
    """Return a flat float32 mono view of an audio block."""
    if audio_data.ndim > 1:
        audio_data = audio_data.mean(axis=1)
    return np.asarray(audio_data, dtype=np.float32).reshape(-1)
