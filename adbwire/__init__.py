"""Client for the Android Debug Bridge server: device commands, sync file transfer and reply parsing."""

__version__ = "0.1.0"