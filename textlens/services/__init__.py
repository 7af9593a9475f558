"""
TextLens Backend — Services Layer
===================================

Service Inventory:
    - AuthService:     Bearer token verification → CallerIdentity
    - FileService:     Upload validation, storage and cleanup
    - OCRService:      Tesseract text extraction, one engine handle per call
    - LLMService:      Abstract explanation interface
    - GeminiService:   Google Gemini implementation of LLMService
    - DocumentService: Persistence gateway plus the upload and explain workflows

Each module exposes a singleton (auth_service, file_service, ...) that the
routes and other services import.
"""
