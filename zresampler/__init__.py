"""Band-limited audio resampling, dithering, audio file I/O and conversion commands."""

__version__ = "1.8.0"

__all__ = [
    "audiofile",
    "cresampler",
    "dither",
    "resampler",
    "table",
    "vresampler",
    "zresample",
    "zretune",
]