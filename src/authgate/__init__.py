"""authgate - a static site behind an OAuth2 login.

Requests for the site are let through only when the signed session cookie
carries an authenticated identity. Everyone else is sent through the
identity provider's login first.
"""

__version__ = "0.1.0"
