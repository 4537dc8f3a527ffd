"""
Audio Translation Pipeline Module

This module orchestrates the audio translation pipeline that:
1. Normalizes the input audio to 16 kHz mono WAV
2. Transcribes it via the transcription service
3. Translates the text in an isolated worker process
4. Synthesizes speech from chunked remote text-to-speech
5. Speeds up the result and writes one output file
"""

__version__ = "1.0.0"
