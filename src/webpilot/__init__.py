"""WebPilot - autonomous browser agent driven by LLM tool calling."""

__version__ = "0.1.0"
