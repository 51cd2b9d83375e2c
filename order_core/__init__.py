"""Core (UI-agnostic) order analytics logic.

This package contains:
- column normalization and record loading (XLSX/CSV/API payload -> pandas)
- status taxonomy predicates
- filter normalization and the date/product/pincode filter pipeline
- aggregation functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
