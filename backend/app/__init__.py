"""
Bucket Gateway Backend Application Package

A multi-tenant metadata gateway in front of an S3-compatible object store.
Bucket owners manage buckets through a JWT-protected API; clients holding a
bucket's public key request presigned upload and download URLs.

Package Structure:
- api/: REST API endpoints organized by version (v1)
- core/: Infrastructure (database, redis, storage, auth, error taxonomy)
- models/: Pydantic data models
- repositories/: MongoDB persistence with no business rules
- services/: Bucket, file, user and access-issuance logic
- utils/: Cache, logging and security helpers
"""

__version__ = "1.0.0"
__app_name__ = "bucket-gateway"
