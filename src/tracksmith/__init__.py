"""tracksmith - reconcile audio files on disk into a music library database."""

__version__ = "0.1.0"
