"""Decoded audio buffers, decoders and the decode cache."""

from subweave.audio.cache import AudioCache
from subweave.audio.decoded import DecodedAudio
from subweave.audio.ffmpeg import AudioDecoder, FFmpegAudioDecoder

__all__ = ["AudioCache", "AudioDecoder", "DecodedAudio", "FFmpegAudioDecoder"]
