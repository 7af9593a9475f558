"""
TextLens Backend — API Routes Package
=======================================

Route Inventory:
    - ocr.py:     POST /ocr/upload    (upload image, extract text)
                  GET  /ocr/list      (caller's documents, paged and searchable)
                  POST /ocr/explain   (question about one document)
    - health.py:  GET  /health        (service health check)

Routes stay thin: parse the request, resolve the caller, call a service.
"""
