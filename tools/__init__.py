"""Internal tooling for repository guard checks.

Hosts static checks that complement the runtime MustDestroy guard:
- Every MustDestroy created in a scope is destroyed or handed off
"""
