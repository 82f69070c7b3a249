"""Tests for the classifier serving components.

Unit tests cover scaling, prediction orchestration and configuration;
integration tests load small ONNX graphs built in ``tests.helpers``.
"""
