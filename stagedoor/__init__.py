"""Stagedoor static asset server.

This package serves the pre-built output of the band website: HTML pages,
image variants, stylesheets, scripts and fonts produced by the build pipeline.
Every response carries a cache policy chosen by content type, a fixed set of
security headers and, for API-like paths, CORS headers.

The main entry point is the CLI module, which provides commands for serving
a build directory, inspecting how a request path resolves, and listing the
assets a build contains.

Request flow:
- paths: Turns request paths into store lookup keys.
- stores: Read-only asset stores (in-memory, build directory, swappable).
- policies: Cache-Control table, security headers and CORS annotation.
- responder: Orchestrates lookup, 404 fallback and 500 handling.
- server: Threaded HTTP front end with redeploy-on-change.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
