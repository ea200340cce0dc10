"""Test suite for Header Type Model.

Test Structure:
- domain/services/: lexer, parser, evaluator, registry, layout, diff and serialization tests
- application/: batch analysis tests
- infrastructure/: configuration and logging tests
- utils/: output naming helpers
- fixtures/: sample headers, including two snapshot directories

Run tests with pytest:
    pytest                    # Run all tests
    pytest -m unit            # Run unit tests only
    pytest -m integration     # Run end-to-end tests only
"""
