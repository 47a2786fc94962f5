"""
AI Lab — streaming chat, tool calling, retrieval-augmented generation and
multimodal image generation/analysis behind a single HTTP API.
"""

__version__ = "0.1.0"
