"""
Backend RiskScope: risk reports for crypto influencers.

Combines social-media metrics and on-chain wallet activity into a bounded
risk score and a written assessment. Modular architecture with clear
separation between ingestion adapters, analytics engine, AI text generation,
persistence, and the API server.
"""

__version__ = "0.1.0"
