"""
Audio module wrapping FFmpeg for input normalization and tempo post-processing.
"""

__version__ = "1.0.0"

from .ffmpeg_tool import AudioTool, AudioToolError, AudioToolNotFoundError, FFmpegTool
from .processing import AudioFormatConverter, AudioPostProcessor

__all__ = [
    "AudioTool",
    "AudioToolError",
    "AudioToolNotFoundError",
    "FFmpegTool",
    "AudioFormatConverter",
    "AudioPostProcessor",
]
