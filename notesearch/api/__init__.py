"""Search REST API package.

Sub-modules expose FastAPI routers and exception handlers:
- search: keyword search, suggestions, history and analytics
- errors: SearchError to JSON envelope mapping
"""
