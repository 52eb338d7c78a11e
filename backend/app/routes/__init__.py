# Routes package init
"""
Blog Platform Backend — API Routes Package
==========================================

Route Inventory:
    - health.py:     GET /health, GET /db-health            (no gate)
    - diagnostic.py: GET /api/diagnostic/status|db-reconnect (excluded from the gate)
    - auth.py:       /api/auth/signup|login, /api/users, /api/users/me
    - categories.py: /api/categories, /api/authors
    - blogs.py:      /api/blogs/*

Routes are THIN: extract input, call a service, wrap the result. Every
/api route except diagnostics runs behind the database gate.
"""
