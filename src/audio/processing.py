"""
Format normalization and tempo post-processing stages.
"""

import logging
import os

from pipeline.errors import AudioToolMissingError, ConversionError, PostProcessError
from pipeline.jobs import Stage
from pipeline.temp_files import TempResourceManager

from .ffmpeg_tool import AudioTool, AudioToolError, AudioToolNotFoundError

logger = logging.getLogger(__name__)


class AudioFormatConverter:
    """Normalizes input audio to a mono 16 kHz waveform."""

    def __init__(self, tool: AudioTool, sample_rate: int = 16000, channels: int = 1):
        self.tool = tool
        self.sample_rate = sample_rate
        self.channels = channels

    async def convert(self, input_path: str, temp: TempResourceManager) -> str:
        """
        Transcode input_path into a freshly allocated temp WAV.

        Returns:
            Path of the normalized waveform (registered with temp)

        Raises:
            AudioToolMissingError: the tool binary is not available
            ConversionError: the tool failed on this input
        """
        wav_path = temp.allocate(".wav", prefix="normalized_")
        logger.info(f"Converting {input_path} to {self.sample_rate} Hz, {self.channels} channel(s) at {wav_path}")
        try:
            await self.tool.transcode(input_path, wav_path, sample_rate=self.sample_rate, channels=self.channels)
        except AudioToolNotFoundError as e:
            raise AudioToolMissingError(f"Audio tool unavailable: {e}", stage=Stage.CONVERTING) from e
        except AudioToolError as e:
            raise ConversionError(f"Audio conversion failed: {e}", stage=Stage.CONVERTING) from e
        return wav_path


class AudioPostProcessor:
    """Applies a fixed tempo multiplier to the synthesized output in place."""

    def __init__(self, tool: AudioTool, tempo: float = 1.25):
        self.tool = tool
        self.tempo = tempo

    async def apply_tempo(self, output_path: str, temp: TempResourceManager) -> str:
        """
        Speed up output_path. The processed file is written next to it and
        renamed over it only when the tool succeeds, so output_path holds
        either the original synthesis or the fully processed result.
        """
        directory = os.path.dirname(output_path)
        _, ext = os.path.splitext(output_path)
        tempo_path = temp.allocate(ext, directory=directory, prefix="temp_")
        logger.info(f"Applying tempo x{self.tempo} to {output_path}")
        try:
            await self.tool.change_tempo(output_path, tempo_path, self.tempo)
        except AudioToolNotFoundError as e:
            temp.release(tempo_path)
            raise PostProcessError(f"Audio tool unavailable: {e}", stage=Stage.POST_PROCESSING, cause="tool_missing") from e
        except AudioToolError as e:
            temp.release(tempo_path)
            raise PostProcessError(f"Tempo adjustment failed: {e}", stage=Stage.POST_PROCESSING) from e

        try:
            temp.promote(tempo_path, output_path)
        except OSError as e:
            temp.release(tempo_path)
            raise PostProcessError(f"Could not replace {output_path}: {e}", stage=Stage.POST_PROCESSING) from e
        return output_path
