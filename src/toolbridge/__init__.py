"""toolbridge: emulated tool calling for OpenAI-style chat backends."""

__version__ = "0.1.0"
