"""
Core infrastructure for the bucket gateway.

- auth: JWT owner authentication and bucket-key resolution dependencies
- database: MongoDB async client with Motor and the gateway's indexes
- exceptions: Error taxonomy mapped to HTTP status codes
- redis_client: Redis async client backing the shared cache
- storage: S3-compatible object store gateway
"""
