"""
Clinic booking backend.

Layout:
- config.py     : settings from environment (.env) and logging setup
- db.py         : engine / session factory helpers for SQLAlchemy
- models.py     : ORM models and enums
- errors.py     : error taxonomy mapped to HTTP responses
- repository.py : storage access (CRUD + admin operations)
- services.py   : domain logic (booking intake, notification fan-out, listings)
- directory.py  : patients, therapists, appointments and user accounts
- security.py   : password hashing
- seed.py       : initial data (admin, therapists, patients)
- api_main.py   : FastAPI application
- cli.py        : operator CLI
"""
