"""Pipeline and review services.

Leaf-first: fetcher → chunker → show_extractor → normalizer → deduplicator,
then review_service (admin decisions) and feedback_loop (source trust).
"""
