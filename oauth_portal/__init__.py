"""OAuth2.0 login portal (Google + Discord) with server-side sessions."""

__version__ = "1.0.0"
