"""llm_bridge: one interface over many LLM vendor APIs."""

__version__ = "0.1.0"
