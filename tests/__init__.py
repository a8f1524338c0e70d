"""
LLM Router Test Suite
=====================

Run all tests:
    pytest tests/ -v

Security note: These tests use stubbed SDK clients and
do not require real API keys.
"""
