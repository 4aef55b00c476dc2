"""
Resolver package: key derivation, provider lookup and the same-origin proxies
that keep browser playback on the application's own host.
"""

__all__ = ["embed", "errors", "keygen", "manifest", "models", "proxy", "retry", "stream_resolver"]
