"""
Storage Package.

Persistence of the address sync pipeline.

Modules:
- database: engine, sessions, schema creation
- models/: ORM models
- repositories/: data access layer
"""
