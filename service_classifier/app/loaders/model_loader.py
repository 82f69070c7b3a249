"""ONNX Runtime model handle for the classifier graph."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import onnxruntime as ort
import structlog

from ..runtime.errors import InferenceError, ModelLoadError
from ..runtime.feature_scaler import FEATURE_COUNT

logger = structlog.get_logger("classifier.model_loader")

# ONNX element type of the input port -> dtype the standardized vector is narrowed to.
_INPUT_DTYPES = {
    "tensor(float)": np.float32,
    "tensor(double)": np.float64,
}


class ModelHandle:
    """Owns an ``ort.InferenceSession`` and its resolved port names.

    The graph must expose exactly one input and one output port; both names
    are resolved once at load time. ``infer`` performs no locking: the ONNX
    Runtime session is not treated as reentrant, so callers serialize access.

    Example
    >>> with ModelHandle.load_file("models/sklearn_classifier.onnx") as handle:
    ...     class_index = handle.infer(standardized)
    """

    def __init__(
        self,
        session: ort.InferenceSession,
        input_name: str,
        output_name: str,
        input_dtype: Any,
        feature_count: int = FEATURE_COUNT,
        name: str = "classifier",
    ):
        self._session: Optional[ort.InferenceSession] = session
        self.input_name = input_name
        self.output_name = output_name
        self.input_dtype = np.dtype(input_dtype)
        self.feature_count = feature_count
        self.name = name

    @classmethod
    def load(
        cls,
        artifact: bytes,
        feature_count: int = FEATURE_COUNT,
        providers: Optional[Sequence[str]] = None,
        intra_op_threads: int = 1,
        name: str = "classifier",
    ) -> "ModelHandle":
        """Create a session from serialized graph bytes and resolve its ports.

        Raises
        - ModelLoadError: if the bytes are not a loadable graph, or the graph
          does not have exactly one input and one output port, or its input
          port does not accept a ``1 x feature_count`` float tensor
        """
        if not artifact:
            raise ModelLoadError("Model artifact is empty")

        session_options = ort.SessionOptions()
        session_options.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL
        session_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        session_options.intra_op_num_threads = intra_op_threads

        try:
            session = ort.InferenceSession(
                artifact,
                sess_options=session_options,
                providers=list(providers or ["CPUExecutionProvider"]),
            )
        except Exception as e:
            raise ModelLoadError(f"Cannot create inference session: {e}") from e

        inputs = session.get_inputs()
        outputs = session.get_outputs()
        if len(inputs) != 1:
            raise ModelLoadError(f"Expected exactly 1 input port, graph has {len(inputs)}")
        if len(outputs) != 1:
            raise ModelLoadError(f"Expected exactly 1 output port, graph has {len(outputs)}")

        input_port = inputs[0]
        input_dtype = _INPUT_DTYPES.get(input_port.type)
        if input_dtype is None:
            raise ModelLoadError(f"Unsupported input element type {input_port.type}")

        shape = list(input_port.shape or [])
        if shape:
            if len(shape) != 2:
                raise ModelLoadError(f"Input port must be rank 2, got shape {shape}")
            if isinstance(shape[0], int) and shape[0] != 1:
                raise ModelLoadError(
                    f"Input port has fixed batch size {shape[0]}, requests submit one row"
                )
            if isinstance(shape[-1], int) and shape[-1] != feature_count:
                raise ModelLoadError(
                    f"Input port expects {shape[-1]} features, scaler provides {feature_count}"
                )

        handle = cls(
            session,
            input_name=input_port.name,
            output_name=outputs[0].name,
            input_dtype=input_dtype,
            feature_count=feature_count,
            name=name,
        )
        logger.info(
            "Inference session created",
            model_name=name,
            input_name=handle.input_name,
            output_name=handle.output_name,
            input_shape=shape,
            input_type=input_port.type,
            providers=session.get_providers(),
        )
        return handle

    @classmethod
    def load_file(cls, path: Union[str, Path], **kwargs: Any) -> "ModelHandle":
        """Read a serialized graph fully into memory and load it."""
        path = Path(path)
        logger.info("Loading model artifact", path=str(path))
        try:
            artifact = path.read_bytes()
        except FileNotFoundError as e:
            raise ModelLoadError("Model file not found", str(path)) from e
        except OSError as e:
            raise ModelLoadError(f"Cannot read model file: {e}", str(path)) from e

        try:
            return cls.load(artifact, **kwargs)
        except ModelLoadError as e:
            if e.path is None:
                raise ModelLoadError(e.message, str(path)) from e
            raise

    @property
    def closed(self) -> bool:
        return self._session is None

    def infer(self, standardized: Sequence[float]) -> int:
        """Run the graph on one standardized vector and return the class index.

        The vector is submitted as a single-row batch of shape
        ``(1, feature_count)``. The output must be an integer tensor holding
        exactly one value; it is copied out and returned unchanged.

        Raises
        - InferenceError: on engine failure or unexpected output
        """
        session = self._session
        if session is None:
            raise InferenceError("Model handle is closed")

        vector = np.asarray(standardized, dtype=np.float64)
        if vector.shape != (self.feature_count,):
            raise InferenceError(
                f"Expected a vector of {self.feature_count} features, got shape {vector.shape}"
            )

        # Narrowing to the graph's input precision happens here and nowhere else.
        batch = vector.reshape(1, self.feature_count).astype(self.input_dtype)

        try:
            outputs = session.run([self.output_name], {self.input_name: batch})
        except Exception as e:
            raise InferenceError(f"Inference failed: {e}") from e

        if not outputs or outputs[0] is None:
            raise InferenceError(f"Output '{self.output_name}' missing from inference result")

        return self._extract_class_index(outputs[0])

    def _extract_class_index(self, value: Any) -> int:
        if not isinstance(value, np.ndarray):
            raise InferenceError(
                f"Output '{self.output_name}' has unexpected type {type(value).__name__}"
            )
        if value.size != 1 or value.ndim > 2:
            raise InferenceError(
                f"Output '{self.output_name}' has unexpected shape {value.shape}"
            )
        if not np.issubdtype(value.dtype, np.integer):
            raise InferenceError(
                f"Output '{self.output_name}' has unexpected dtype {value.dtype}"
            )

        logger.debug(
            "Raw model output",
            output_name=self.output_name,
            dtype=str(value.dtype),
            shape=list(value.shape),
        )
        return int(value.reshape(-1)[0])

    def describe(self) -> Dict[str, Any]:
        """Port names, input metadata, and execution providers."""
        providers: List[str] = self._session.get_providers() if self._session is not None else []
        return {
            "name": self.name,
            "input_name": self.input_name,
            "output_name": self.output_name,
            "input_dtype": self.input_dtype.name,
            "feature_count": self.feature_count,
            "providers": providers,
            "closed": self.closed,
        }

    def close(self) -> None:
        """Release the native session. Safe to call more than once.

        Dropping the last reference to the session frees its native
        allocations immediately.
        """
        session, self._session = self._session, None
        if session is None:
            return
        del session
        logger.info("Inference session released", model_name=self.name)

    def __enter__(self) -> "ModelHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
