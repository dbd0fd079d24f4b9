"""Business logic layer for file manager app.

This package contains all storage orchestration:
- Path normalization and validation
- Upload naming strategies
- Folder tree copy/rename/move built from file-level calls
- Upload jobs and the FileManager facade used by views

Keep Django request handling out of here: views only translate
HTTP parameters and errors.
"""
