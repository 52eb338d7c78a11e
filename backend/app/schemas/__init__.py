# Schemas package init
"""
Pydantic request/response models, one module per resource.

Schemas are separate from stored documents: the API exposes string ids,
populated references and never the password hash.
"""
