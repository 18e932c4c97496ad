"""
Wavesplit - multichannel WAV demultiplexer.

Splits an interleaved multichannel recording into named mono and stereo
WAV files, guided by a per-channel label list: labels → channel plan →
streaming chunked demux → one output file per channel or stereo pair.
"""

__version__ = "0.1.0"
