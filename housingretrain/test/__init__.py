"""
Tests for the housing retrain job.

This package contains tests that verify:
- Record parsing, including the terminator and strictness rules
- Artifact fetching and local caching
- Model loading and linear-parameter extraction
- Warm-started retraining and drift reporting
- The HTTP trigger end to end
"""
