# Schemas package init
"""
TextLens Backend — Pydantic Schemas

    auth.py      CallerIdentity resolved from bearer tokens
    document.py  /ocr request and response bodies (camelCase on the wire)
    common.py    Error and health payloads
"""
