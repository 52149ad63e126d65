"""
Fake implementations for testing.

Fakes are simplified working implementations of core interfaces that
behave like real components but avoid external services.

Key fakes:
- FakeAnalysisClient: scripted text-generation client that records calls
- FakeRedis: dict-backed stand-in for the few redis-py calls we make
"""
