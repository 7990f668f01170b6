"""
authsession

Session and token lifecycle service: password-based registration and login,
short-lived access tokens, revocable refresh tokens, role checks, and a
client-side controller that keeps a session alive.

Packages:
- auth: server-side core (store, hashing, token codec, issuer, refresher,
  guard) and the HTTP routes over it
- client: session controller, HTTP transport and local persistence
"""

__version__ = "1.0.0"
