"""
Ingestion layer for CityPulse.

Turns raw event text from crawlers into validated, deduplicated, geocoded
event records.

Key Components:
- PipelineOrchestrator: drives blobs through every stage
- RecordValidator: accept/reject rules for candidate records
- AcceptedEventIndex and deduplication strategies
- normalization: field extraction and geocoding
"""
