"""Classifier serving service package.

Layout:
- ``api``: REST endpoints, schemas and the error-to-status mapping.
- ``loaders``: the ONNX Runtime model handle.
- ``runtime``: feature scaling, the prediction service and lifecycle hooks.

Import convenience:
- from service_classifier.app.runtime.lifecycle import ResourceLifecycle
"""
