"""
Bucket Gateway API Package.

Package Structure:
    - v1/: Version 1 API endpoints
        - auth.py: Owner registration, login and profile endpoints
        - buckets.py: Owner bucket, file and dashboard endpoints
        - public.py: Bucket-key authenticated upload and download endpoints
"""
