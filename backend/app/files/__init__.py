"""File upload and storage module for Huddle.

This module stores media shared in the chat room. Files are kept on local
disk under UUID-based names and their metadata is tracked in DuckDB.

Every upload is classified by MIME type:
- image/*: image
- video/*: video
- anything else: other

Files up to 10MB are accepted by default (``uploads.max_file_size_bytes``).
"""
