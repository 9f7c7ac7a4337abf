"""
HTTP API for the back-office admin panel.

Run with: uvicorn api.main:app --reload
"""
