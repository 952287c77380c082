"""
Brave Gateway - .brave domain resolver for the web

This module implements an HTTP gateway that serves ``*.brave.site`` hostnames. Every request
hostname is mapped onto a ``.brave`` name, resolved through the Unstoppable Domains resolution
API, and answered either with a redirect or with content fetched from public IPFS gateways.

Key Components:
- app: Web application layer with the request pipeline, configuration and server setup
- resolve: Hostname parsing, resolution caching, name resolution and record interpretation
- ipfs: Content retrieval from IPFS gateways and content type inference
- errors: Exception types shared by every pipeline stage

Architecture Overview:
1. Hostname Parsing:
   - ``sub.name.brave.site`` becomes the lookup key ``sub.name.brave``
   - The bare ``brave.site`` root answers with a welcome message

2. Name Resolution:
   - Lookup keys are resolved once per process and cached in memory
   - Records are interpreted with a fixed precedence: redirect first, then IPFS hashes

3. Content Delivery:
   - Gateways are raced concurrently, then retried sequentially on failure
   - Responses carry an inferred content type and public caching headers
"""
