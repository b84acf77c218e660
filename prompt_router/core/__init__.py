"""Routing-and-fallback engine.

Modules, leaves first:
- model_catalog: Model descriptors, prices and per-category preference lists
- prompt_classifier: Ordered rule table mapping prompt text to a category
- credential_availability: Which providers have API keys configured
- health_tracker: Per-provider failure counts and cooldowns
- router: Candidate selection and cost estimation
- custom_rules: Caller-supplied category -> model overrides
- completion_service: Adapter for the external completion service
- fallback_executor: Bounded retry loop that re-routes around failures
- observability: Logfire events for routing outcomes

Public names are re-exported from the top-level ``prompt_router`` package.
"""
