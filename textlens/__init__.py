"""
TextLens Backend
=================

Document OCR and explanation API: upload an image, get its text back
through Tesseract, and ask Gemini questions about it later.

    ┌─────────────────────────────────────┐
    │     Routes (/ocr, /health)          │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │  Services (document, file, OCR,     │  ← Orchestration, validation
    │            auth, Gemini)            │
    ├─────────────────────────────────────┤
    │  Models (users, documents) & Schemas│  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │  Database (async sessions)          │  ← Persistence
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
