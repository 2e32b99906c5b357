"""
Core contracts and errors shared by every pipeline stage.
"""

from .contracts import (
    BACKGROUND_LABEL,
    PipelineStage,
    SourceImage,
    Mask,
    Segment,
    ProgressEvent,
    CompositeOutput,
    PipelineRun,
)
from .progress import (
    ProgressSink,
    NullSink,
    CallbackSink,
    CollectingSink,
    ProgressStream,
    ProgressReporter,
    ScaledSink,
    ReporterSink,
    as_sink,
)
from .errors import (
    CutoutError,
    ModelInitError,
    ImageDecodeError,
    SegmentationError,
    InvalidSegmentationResult,
    NoForegroundError,
    EncodingError,
    ConfigError,
)
