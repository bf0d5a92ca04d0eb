"""MDM device inventory across multiple Microsoft Entra ID tenants.

This package exposes helpers for configuration loading, interactive tenant
sign-in, Intune device retrieval, aggregation, and CSV export.
"""
