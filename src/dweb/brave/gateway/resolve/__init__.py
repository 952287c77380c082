"""
Name Resolution

This package turns request hostnames into decisions about what to serve.

Key Components:
- hostname.py: Request hostname parsing into ``.brave`` lookup keys
- cache.py: Process-wide resolution cache
- domains.py: Unstoppable Domains resolution API client
- records.py: Resolution record model and interpretation
- __main__.py: CLI interface for resolution

The resolution flow follows these steps:
1. Parse the hostname; ``name.brave.site`` is looked up as ``name.brave``
2. Return the cached record, or query the resolution API and cache the answer
3. Interpret the record: ``browser.redirect_url`` first, then ``dweb.ipfs.hash``,
   ``ipfs.html.value`` and ``crypto.IPFS.value``
"""
