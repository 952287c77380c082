"""
IPFS Content Delivery

Key Components:
- fetch.py: Gateway race with sequential fallback
- content_type.py: Content type inference for gateway responses
"""
