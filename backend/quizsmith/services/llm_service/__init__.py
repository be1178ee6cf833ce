"""LLM service module.

Key modules:
- llm.py: Chat model factory
- structured_invoker.py: Schema-constrained completion with deterministic fallback
- llm_schemas.py: Pydantic schemas for structured outputs
"""
