"""
Housing retrain job.

This package contains the triggered retraining job that:
- Fetches the feature pipeline and regression model from an artifact store
- Parses newly arrived housing records
- Warm-starts a refit of the generalized linear model on those records
- Reports per-feature weight drift between the original and retrained model
"""

__all__ = ['retrain_job']
