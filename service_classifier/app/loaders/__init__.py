"""Model loaders.

Loaders encapsulate how the compiled inference graph is materialized from
its serialized artifact and prepared for inference.
"""
