"""
Remote data gateway: HTTP client, row normalizers and per-collection fetchers.
"""
