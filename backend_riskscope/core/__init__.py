"""
Core cross-cutting concerns: domain exceptions shared by the analytics engine,
ingestion adapters, and API server.
"""
