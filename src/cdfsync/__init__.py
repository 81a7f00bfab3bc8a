"""cdf-sync -- eventually-consistent content syndication between sites.

Each site publishes local entities as Canonical Data Format (CDF)
documents and/or subscribes to documents published by other sites.
There is no shared database: per-UUID tracking tables, hash comparison
and a work queue keep independently operated repositories converging.

Architecture::

    core/        errors, logging, settings, hashing, protocols, schema
    cdf/         CDF object + document model (pure data, no I/O)
    ingestion/   dependency stack, ingestion engine, serializer, importer
    tracking/    publisher + subscriber tracking tables
    execution/   work queue, enqueuer, export/import workers
    interest/    interest lists, republish requests, webhook dispatch
    audit/       hash/presence audit of tracked entities
"""

__version__ = "0.4.0"
