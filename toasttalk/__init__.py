"""toasttalk: streaming tool-calling conversation core for a voice assistant."""

__version__ = "0.1.0"
