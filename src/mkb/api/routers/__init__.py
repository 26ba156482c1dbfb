"""
mkb.api.routers

HTTP routers: auth (SSO login), jobs (manual triggers), killmails (read API), health.
"""

# Package marker.
