"""Test helpers: ONNX graph builders, a stub model and artifact writers.

The classifier graphs compute ``argmax(x @ W)`` so the predicted class is
controlled by the weight matrix.
"""

import json
import threading
import time
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np
import onnx
from onnx import TensorProto, helper, numpy_helper

FEATURES = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0]
FEATURE_COUNT = len(FEATURES)

INPUT_NAME = "float_input"
OUTPUT_NAME = "output_label"

_ELEMENT_TYPES = {
    np.float32: TensorProto.FLOAT,
    np.float64: TensorProto.DOUBLE,
}


def constant_class_weights(class_index: int, n_classes: int = 4, n_features: int = 10) -> np.ndarray:
    """Weights under which any all-positive vector is assigned ``class_index``."""
    weights = np.zeros((n_features, n_classes))
    weights[:, class_index] = 1.0
    return weights


def _finish(graph: onnx.GraphProto) -> bytes:
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 8
    onnx.checker.check_model(model)
    return model.SerializeToString()


def classifier_graph(
    weights: np.ndarray,
    dtype=np.float32,
    n_features: Optional[int] = None,
    extra_output: bool = False,
    label_output: bool = True,
    batch: Optional[int] = None,
) -> bytes:
    """Serialized ``argmax(x @ W)`` classifier.

    Parameters
    - weights: ``(n_features, n_classes)`` matrix
    - dtype: input element type, float32 or float64
    - n_features: declared input width (defaults to ``weights.shape[0]``)
    - extra_output: also expose the raw scores as a second output port
    - label_output: when False, expose only the float scores as the output
    - batch: fixed batch dimension of the input port (dynamic when None)
    """
    element_type = _ELEMENT_TYPES[dtype]
    width = n_features if n_features is not None else weights.shape[0]
    n_classes = weights.shape[1]

    x = helper.make_tensor_value_info(INPUT_NAME, element_type, [batch, width])
    w = numpy_helper.from_array(weights.astype(dtype), name="W")
    matmul = helper.make_node("MatMul", [INPUT_NAME, "W"], ["scores"])
    scores = helper.make_tensor_value_info("scores", element_type, [batch, n_classes])

    if not label_output:
        graph = helper.make_graph([matmul], "classifier", [x], [scores], initializer=[w])
        return _finish(graph)

    argmax = helper.make_node("ArgMax", ["scores"], [OUTPUT_NAME], axis=1, keepdims=0)
    label = helper.make_tensor_value_info(OUTPUT_NAME, TensorProto.INT64, [batch])
    outputs = [label, scores] if extra_output else [label]
    graph = helper.make_graph([matmul, argmax], "classifier", [x], outputs, initializer=[w])
    return _finish(graph)


def two_input_graph(n_features: int = 10) -> bytes:
    """Serialized graph with two input ports (``argmax(a + b)``)."""
    a = helper.make_tensor_value_info("a", TensorProto.FLOAT, [None, n_features])
    b = helper.make_tensor_value_info("b", TensorProto.FLOAT, [None, n_features])
    add = helper.make_node("Add", ["a", "b"], ["summed"])
    argmax = helper.make_node("ArgMax", ["summed"], [OUTPUT_NAME], axis=1, keepdims=0)
    label = helper.make_tensor_value_info(OUTPUT_NAME, TensorProto.INT64, [None])
    graph = helper.make_graph([add, argmax], "two_inputs", [a, b], [label])
    return _finish(graph)


def float_sum_graph(n_features: int = 10) -> bytes:
    """Serialized graph whose single output is a float scalar (``sum(x)``)."""
    x = helper.make_tensor_value_info(INPUT_NAME, TensorProto.FLOAT, [None, n_features])
    reduce_sum = helper.make_node("ReduceSum", [INPUT_NAME], [OUTPUT_NAME], keepdims=0)
    total = helper.make_tensor_value_info(OUTPUT_NAME, TensorProto.FLOAT, [])
    graph = helper.make_graph([reduce_sum], "float_sum", [x], [total])
    return _finish(graph)


def write_preprocessing(path: Path, mean: Sequence[float], scale: Sequence[float]) -> Path:
    """Write a preprocessing document in the training job's export format."""
    path.write_text(json.dumps({"classifier": {"scaler_mean": list(mean), "scaler_scale": list(scale)}}))
    return path


class StubModel:
    """Stands in for ``ModelHandle``: counts calls and tracks overlap."""

    def __init__(self, class_index: int = 0, delay: float = 0.0, error: Optional[Exception] = None):
        self.name = "stub"
        self.feature_count = FEATURE_COUNT
        self.class_index = class_index
        self.delay = delay
        self.error = error
        self.calls = 0
        self.close_calls = 0
        self.active = 0
        self.max_active = 0
        self.inputs: List[np.ndarray] = []
        self._counter_lock = threading.Lock()

    def infer(self, standardized: Sequence[float]) -> int:
        with self._counter_lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.inputs.append(np.array(standardized))
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return self.class_index
        finally:
            with self._counter_lock:
                self.active -= 1

    def close(self) -> None:
        self.close_calls += 1
