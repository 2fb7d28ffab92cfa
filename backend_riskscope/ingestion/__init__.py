"""
Ingestion adapters: live social and blockchain providers, deterministic
synthetic providers, and the TTL cache adapters own.
"""
