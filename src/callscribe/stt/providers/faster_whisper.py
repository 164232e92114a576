"""Continuous recognizer built on faster-whisper.

Captured frames are pushed in through ``accept_audio``. A background thread
accumulates speech with an adaptive RMS threshold, publishes interim
hypotheses while an utterance grows, and finalizes the utterance once the
speaker pauses.
"""

from __future__ import annotations

import importlib.util
import logging
import math
import queue
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import NDArray

from callscribe.audio_meter import calculate_rms, to_mono
from callscribe.config import RecognitionConfig
from callscribe.stt.error_codes import RecognitionErrorCode
from callscribe.stt.exceptions import ModelNotFoundError, RecognitionError
from callscribe.stt.models import RecognitionAlternative, RecognitionResult
from callscribe.stt.providers.base import BaseRecognizer

if TYPE_CHECKING:
    from faster_whisper import WhisperModel

logger = logging.getLogger(__name__)

# Whisper models are trained on 16 kHz mono audio
TARGET_SAMPLE_RATE = 16000

SILENCE_TO_FINALIZE_S = 0.8  # Pause that ends an utterance
MIN_SPEECH_S = 0.3  # Shorter utterances are dropped
MAX_UTTERANCE_S = 30.0  # Whisper's context window
MIN_SPEECH_RMS = 0.002
INITIAL_SPEECH_RMS = 0.003
MAX_NOISE_SAMPLES = 20

# Error code for engine failures that are worth retrying
ENGINE_ERROR = "engine-error"

ModelFactory = Callable[[str, str, str], Any]

_STOP = object()


def whisper_language(language: str) -> str | None:
    """Map a BCP-47 tag to Whisper's language code.

    Args:
        language: Tag such as "en-US" or "fr". Empty or "auto" detects.

    Returns:
        Lower-case primary subtag, or None for auto-detection.
    """
    primary = language.strip().split("-")[0].split("_")[0].lower()
    if not primary or primary == "auto":
        return None
    return primary


def resample(audio: NDArray[np.float32], from_rate: int, to_rate: int = TARGET_SAMPLE_RATE) -> NDArray[np.float32]:
    """Resample mono audio with scipy's FFT resampler."""
    if from_rate == to_rate or audio.size == 0:
        return audio.astype(np.float32, copy=False)

    from scipy import signal as scipy_signal

    num_samples = int(round(len(audio) * to_rate / from_rate))
    return scipy_signal.resample(audio, num_samples).astype(np.float32)


def _load_whisper_model(model_size: str, device: str, compute_type: str) -> WhisperModel:
    try:
        from faster_whisper import WhisperModel
    except ImportError as e:
        raise ModelNotFoundError(
            "faster-whisper not installed. Install with: pip install callscribe[whisper]"
        ) from e

    logger.info(f"Loading faster-whisper model: {model_size} on {device} ({compute_type})")
    try:
        return WhisperModel(model_size, device=device, compute_type=compute_type)
    except Exception as e:
        raise ModelNotFoundError(f"Failed to load model '{model_size}': {e}") from e


class FasterWhisperRecognizer(BaseRecognizer):
    """Recognizer that transcribes captured audio with a local Whisper model.

    Each ``start()`` runs one session on a worker thread. The session emits
    interim results every ``interim_interval_s`` of accumulated speech, a
    final result after each pause, a ``no-speech`` error whenever nothing
    was heard for ``no_speech_timeout_s`` and exactly one end event.
    """

    def __init__(
        self,
        model_size: str = "small",
        device: str = "auto",
        compute_type: str = "default",
        language: str = "en-US",
        no_speech_timeout_s: float = 8.0,
        interim_interval_s: float = 1.0,
        model_factory: ModelFactory | None = None,
    ) -> None:
        """Initialize the recognizer.

        Args:
            model_size: Whisper model name (tiny, base, small, medium, large-v3).
            device: Device to use (cuda, cpu) or "auto".
            compute_type: CTranslate2 compute type, "default" lets it choose.
            language: BCP-47 language tag.
            no_speech_timeout_s: Audio without speech before ``no-speech``.
            interim_interval_s: Speech between two interim hypotheses.
            model_factory: Builds the model; defaults to faster-whisper.
        """
        super().__init__(language=language)
        self._model_size = model_size
        self._device = device
        self._compute_type = compute_type
        self._no_speech_timeout_s = no_speech_timeout_s
        self._interim_interval_s = interim_interval_s
        self._model_factory = model_factory or _load_whisper_model
        self._model: Any = None

        self._audio_queue: queue.Queue[Any] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._running = False
        self._aborted = False

    @classmethod
    def from_config(cls, config: RecognitionConfig) -> FasterWhisperRecognizer:
        recognizer = cls(
            model_size=config.model_size,
            device=config.device,
            compute_type=config.compute_type,
            language=config.language,
            no_speech_timeout_s=config.no_speech_timeout_s,
            interim_interval_s=config.interim_interval_s,
        )
        recognizer.continuous = config.continuous
        recognizer.interim_results = config.interim_results
        recognizer.max_alternatives = config.max_alternatives
        return recognizer

    @property
    def is_running(self) -> bool:
        return self._running

    def is_available(self) -> bool:
        if self._model is not None or self._model_factory is not _load_whisper_model:
            return True
        return importlib.util.find_spec("faster_whisper") is not None

    def _ensure_model_loaded(self) -> None:
        """Load the Whisper model if not already loaded."""
        if self._model is None:
            self._model = self._model_factory(self._model_size, self._device, self._compute_type)
            logger.info("Model loaded successfully")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            # The previous session may still be finalizing
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                raise RecognitionError("Recognizer is already running")

        self._audio_queue = queue.Queue()
        self._aborted = False
        self._running = True
        self._thread = threading.Thread(
            target=self._process_loop,
            args=(self._audio_queue,),
            name="callscribe-whisper",
            daemon=True,
        )
        self._thread.start()
        logger.info("Recognition session started")

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._audio_queue.put(_STOP)

    def abort(self) -> None:
        if not self._running:
            return
        self._aborted = True
        self._running = False
        self._audio_queue.put(_STOP)

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for the current session thread to finish.

        Returns:
            True if no session thread is running any more.
        """
        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    def accept_audio(self, frame: NDArray[np.float32], sample_rate: int) -> None:
        if self._running:
            self._audio_queue.put_nowait((frame, sample_rate))

    def _transcribe(self, audio: NDArray[np.float32]) -> RecognitionResult | None:
        """Run the model over one utterance.

        Raises:
            ValueError: If the language is not supported by the model.
        """
        segments_iter, _info = self._model.transcribe(
            audio,
            language=whisper_language(self.language),
            beam_size=max(5, self.max_alternatives),
            word_timestamps=False,
            vad_filter=False,
            condition_on_previous_text=False,
        )

        texts: list[str] = []
        logprobs: list[float] = []
        for seg in segments_iter:
            text = seg.text.strip()
            if text:
                texts.append(text)
                logprobs.append(getattr(seg, "avg_logprob", 0.0))

        if not texts:
            return None

        confidence = float(min(1.0, math.exp(sum(logprobs) / len(logprobs))))
        # Whisper decodes a single hypothesis per utterance
        return RecognitionResult(
            alternatives=(RecognitionAlternative(" ".join(texts), confidence),),
            is_final=False,
        )

    def _process_loop(self, audio_queue: queue.Queue[Any]) -> None:
        """Main processing loop running in the session thread."""
        try:
            self._ensure_model_loaded()
        except ModelNotFoundError as e:
            logger.error(f"Recognizer unavailable: {e}")
            self._running = False
            self._emit_error(RecognitionErrorCode.SERVICE_NOT_ALLOWED.value, str(e))
            self._emit_end()
            return

        finals: list[RecognitionResult] = []
        utterance: list[NDArray[np.float32]] = []
        utterance_s = 0.0
        trailing_silence_s = 0.0
        since_interim_s = 0.0
        since_speech_s = 0.0
        speech_rms_threshold = INITIAL_SPEECH_RMS
        noise_floor_samples: list[float] = []
        failed = False

        def finalize() -> bool:
            """Emit the accumulated utterance as a final result."""
            nonlocal utterance, utterance_s, trailing_silence_s, since_interim_s
            audio = np.concatenate(utterance) if utterance else np.zeros(0, dtype=np.float32)
            speech_s = utterance_s - trailing_silence_s
            utterance = []
            utterance_s = trailing_silence_s = since_interim_s = 0.0
            if speech_s < MIN_SPEECH_S:
                return False

            logger.info(f"Transcribing {speech_s:.1f}s of speech")
            result = self._transcribe(audio)
            if result is None:
                return False
            final = RecognitionResult(alternatives=result.alternatives, is_final=True)
            finals.append(final)
            self._emit_result(finals, result_index=len(finals) - 1)
            return True

        try:
            while True:
                item = audio_queue.get()
                if item is _STOP:
                    break

                frame, sample_rate = item
                audio = resample(to_mono(frame), sample_rate)
                duration_s = len(audio) / TARGET_SAMPLE_RATE
                rms = calculate_rms(audio)

                # Adapt the threshold to the noise floor between utterances
                if not utterance:
                    noise_floor_samples.append(rms)
                    if len(noise_floor_samples) > MAX_NOISE_SAMPLES:
                        noise_floor_samples.pop(0)
                    if len(noise_floor_samples) >= 3:
                        speech_rms_threshold = max(MIN_SPEECH_RMS, float(np.median(noise_floor_samples)) * 3)

                has_speech = rms > speech_rms_threshold
                logger.debug(f"RMS={rms:.4f}, threshold={speech_rms_threshold:.4f}, speech={has_speech}")

                if has_speech:
                    utterance.append(audio)
                    utterance_s += duration_s
                    since_interim_s += duration_s
                    trailing_silence_s = 0.0
                    since_speech_s = 0.0
                elif utterance:
                    utterance.append(audio)
                    utterance_s += duration_s
                    trailing_silence_s += duration_s
                else:
                    since_speech_s += duration_s
                    if since_speech_s >= self._no_speech_timeout_s:
                        since_speech_s = 0.0
                        self._emit_error(RecognitionErrorCode.NO_SPEECH.value)
                        if not self.continuous:
                            break

                if utterance and (trailing_silence_s >= SILENCE_TO_FINALIZE_S or utterance_s >= MAX_UTTERANCE_S):
                    if finalize() and not self.continuous:
                        break
                elif has_speech and self.interim_results and since_interim_s >= self._interim_interval_s:
                    since_interim_s = 0.0
                    interim = self._transcribe(np.concatenate(utterance))
                    if interim is not None:
                        self._emit_result([*finals, interim], result_index=len(finals))

            if not self._aborted and utterance:
                finalize()
        except ValueError as e:
            failed = True
            logger.error(f"Unsupported language {self.language!r}: {e}")
            self._emit_error(RecognitionErrorCode.LANGUAGE_NOT_SUPPORTED.value, str(e))
        except Exception as e:
            failed = True
            logger.error(f"Recognition error: {e}")
            self._emit_error(ENGINE_ERROR, str(e))
        finally:
            self._running = False
            if self._aborted and not failed:
                self._emit_error(RecognitionErrorCode.ABORTED.value)
            self._emit_end()
            logger.info("Recognition session ended")
