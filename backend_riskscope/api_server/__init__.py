"""
HTTP API (FastAPI) for creating and browsing risk reports.
"""
