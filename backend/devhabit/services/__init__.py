# Services package init
"""
DevHabit Backend — Services Layer
===================================

What:  Business logic sitting between routes (HTTP) and the database.
Why:   Routes deal with negotiation, links and status codes; services own the
       queries and business rules and never see a Request.

Service Inventory:
    Domain
    - HabitService:  habit CRUD and the filtered/sorted/paged list query
    - TagService:    tag CRUD (per-user cap, unique names) and habit ↔ tag sets
    - EntryService:  entry CRUD, archiving, offset and keyset listing, streaks

    Query pipeline
    - sorting:             sort mapping registry and sort-string translator
    - data_shaping:        `?fields=` projections with optional links
    - links:               HATEOAS link generation from endpoint names
    - cursor:              opaque keyset cursor codec
    - content_negotiation: Accept header → (media type, links?, version)

    HTTP semantics
    - idempotency + memory_cache: Idempotency-Key replay store
    - etag_store:                 fingerprints for conditional requests
"""
