"""ONNX classifier serving service."""
