"""
mkb.services

Service-layer package.

Responsibilities:
- Own transaction boundaries and persistence decisions.
- Combine SSO/ESI clients with repositories for each job.
"""

# Package marker.
