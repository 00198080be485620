"""
Serving — FastAPI application and the container that wires it.

Run locally with ``uvicorn docchat.serving.app:app`` or
``python -m docchat.serving.app``.
"""
