"""
Dashboard routers.
"""
