"""API subpackage for the classifier service.

Routes are thin layers over ``PredictionService``; the mapping from core
error kinds to HTTP status codes lives in ``errors``.
"""
