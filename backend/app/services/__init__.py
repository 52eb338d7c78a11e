# Services package init
"""
Blog Platform Backend — Services Layer
======================================

What:  Business logic layer sitting between routes (HTTP) and MongoDB.
Why:   Routes handle HTTP; services handle business rules.
How:   Services are stateless module-level instances. Each call receives the
       Motor database from the get_db dependency (and the media service
       when images are involved).

Service Inventory:
    - documents.py:        ObjectId/serialization/slug helpers (pure functions)
    - user_service.py:     signup, login, user lookups
    - category_service.py: category CRUD
    - author_service.py:   author profile CRUD
    - blog_service.py:     blog listings, visibility rules and image lifecycle
    - media_service.py:    image validation + Cloudinary upload/delete
"""
