"""gphoto-cli: pick, download and preview Google Photos from the terminal."""

__version__ = "0.1.0"
