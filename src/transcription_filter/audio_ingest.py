"""
Conversion of host audio frames into canonical mono float samples.
The host's own batch is only read, never modified.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from .errors import ConversionError


class SampleEncoding(str, Enum):
    FLOAT32 = "float32"
    INT16 = "int16"
    INT32 = "int32"


# Divisors that bring integer samples into [-1.0, 1.0)
FULL_SCALE = {
    SampleEncoding.INT16: 32768.0,
    SampleEncoding.INT32: 2147483648.0,
}


@dataclass(frozen=True)
class AudioFrameBatch:
    """One delivery of planar audio from the host."""

    sample_rate: int
    channel_count: int
    sample_encoding: str
    frame_count: int
    planes: Sequence[np.ndarray]


def _resolve_encoding(encoding) -> SampleEncoding:
    try:
        return SampleEncoding(encoding)
    except ValueError:
        raise ConversionError(f"Unsupported sample encoding: {encoding!r}") from None


def convert_to_mono_float(batch: AudioFrameBatch) -> Optional[np.ndarray]:
    """
    Convert a host batch to a mono float32 array of length frame_count.

    Returns None for an empty batch (nothing to buffer). Raises
    ConversionError for encodings we do not understand or batches whose
    planes do not match the stated channel count.
    """
    if batch is None or not batch.planes or batch.planes[0] is None or batch.frame_count <= 0:
        return None

    encoding = _resolve_encoding(batch.sample_encoding)
    channels = batch.channel_count
    frames = batch.frame_count

    if channels < 1 or len(batch.planes) < channels:
        raise ConversionError(
            f"Batch declares {channels} channel(s) but carries {len(batch.planes)} plane(s)"
        )

    planes = []
    for plane in batch.planes[:channels]:
        plane = np.asarray(plane)
        if plane.shape[0] < frames:
            raise ConversionError(
                f"Plane holds {plane.shape[0]} samples, expected {frames}"
            )
        planes.append(plane[:frames])

    if encoding is SampleEncoding.FLOAT32:
        if channels == 1:
            # Copy so the host's plane is never aliased by the buffer
            return np.array(planes[0], dtype=np.float32, copy=True)
        return np.mean(np.stack(planes).astype(np.float32), axis=0).astype(np.float32)

    scale = FULL_SCALE[encoding]
    scaled = np.stack(planes).astype(np.float64) / scale
    if channels == 1:
        return scaled[0].astype(np.float32)
    return np.mean(scaled, axis=0).astype(np.float32)


def rms_db(samples: np.ndarray) -> float:
    """RMS level of the samples in dBFS; -inf for empty or silent input."""
    if samples is None or len(samples) == 0:
        return -math.inf

    samples = np.asarray(samples, dtype=np.float64)
    rms = float(np.sqrt(np.mean(samples ** 2)))
    if rms <= 0.0:
        return -math.inf
    return 20.0 * math.log10(rms)


def is_silence(samples: np.ndarray, threshold_db: float) -> bool:
    """True when the samples are quieter than threshold_db."""
    return rms_db(samples) < threshold_db
