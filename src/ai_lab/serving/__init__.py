"""
Serving — FastAPI application exposing chat, ingestion, images and history.

The application receives every client through an explicit service
container built once at start-up (see :mod:`ai_lab.serving.dependencies`).
"""
