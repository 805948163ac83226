"""
Operations Layer

Business logic that sits between the in-memory ranked collection and the
persistence services:
- bucket_operations: splitting, merging and redistributing bucket payloads
"""
