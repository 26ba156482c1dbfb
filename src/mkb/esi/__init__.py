"""
mkb.esi

EVE Online SSO and ESI integration.

Responsibilities:
- OAuth2 authorization-code and refresh-token flows against EVE SSO.
- Access-token (JWT) validation against the SSO JWKS.
- ESI data calls for killmail references and killmail detail.
"""

# Package marker.
