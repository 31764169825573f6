"""
Soundtrack extraction for recorded interviews.

Engineering decisions:
- 16kHz mono: the audio analyzer only looks at 300-3400 Hz
- FFmpeg demuxes the soundtrack from any container into a scratch WAV,
  librosa decodes and resamples it; the scratch file never outlives the call
"""

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Tuple

import librosa
import numpy as np

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000


def _ffmpeg_command(source: Path, target: Path, sample_rate: int, mono: bool) -> List[str]:
    return [
        'ffmpeg', '-nostdin', '-loglevel', 'error',
        '-i', str(source),
        '-vn',
        '-acodec', 'pcm_s16le',
        '-ar', str(sample_rate),
        '-ac', '1' if mono else '2',
        '-y', str(target),
    ]


def extract_audio_from_video(
    video_path,
    sample_rate: int = SAMPLE_RATE,
    mono: bool = True
) -> Tuple[np.ndarray, int]:
    """
    Decode the soundtrack of a recording.

    Args:
        video_path: Recording (str or Path)
        sample_rate: Target sample rate
        mono: Downmix to one channel

    Returns:
        Tuple of (samples, sample_rate)

    Raises:
        FileNotFoundError: If the recording doesn't exist
        RuntimeError: If FFmpeg is not installed, or the recording has no
                      decodable audio stream
    """
    video_path = Path(video_path)
    if not video_path.exists():
        raise FileNotFoundError(f"Recording not found: {video_path}")

    if shutil.which('ffmpeg') is None:
        raise RuntimeError("FFmpeg was not found on PATH; it is needed to read soundtracks from video files")

    with tempfile.TemporaryDirectory(prefix='presence_audio_') as scratch:
        wav_path = Path(scratch) / f"{video_path.stem}.wav"

        logger.info(f"Extracting soundtrack of {video_path.name} ({sample_rate} Hz)")

        result = subprocess.run(
            _ffmpeg_command(video_path, wav_path, sample_rate, mono),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE
        )
        if result.returncode != 0 or not wav_path.exists():
            message = result.stderr.decode(errors='replace').strip()
            raise RuntimeError(f"FFmpeg could not extract audio from {video_path.name}: {message}")

        return load_audio(wav_path, sample_rate=sample_rate, mono=mono)


def load_audio(audio_path, sample_rate: int = SAMPLE_RATE, mono: bool = True) -> Tuple[np.ndarray, int]:
    """
    Decode an audio file with librosa, resampling to ``sample_rate``.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    audio_path = Path(audio_path)
    if not audio_path.exists():
        raise FileNotFoundError(f"Audio not found: {audio_path}")

    samples, sr = librosa.load(str(audio_path), sr=sample_rate, mono=mono)

    logger.info(f"Decoded {len(samples) / sr:.2f}s of audio at {sr} Hz")

    return samples, sr
