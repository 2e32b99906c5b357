"""
Pipeline Orchestrator.

Executes the background removal pipeline in strict order:

1. Decode the input bytes into an RGBA source image
2. Ensure the segmentation session is ready (loads the model once)
3. Run inference and validate the result at the boundary
4. Select the foreground mask
5. Resample the mask to source resolution
6. Feather (blur, gamma falloff, threshold)
7. Composite alpha onto the source pixels
8. Encode losslessly to PNG

Each request walks the state machine

    Idle -> Initializing -> Ready -> Segmenting -> Resampling
         -> Feathering -> Compositing -> Encoding -> Complete

with Failed reachable from any non-terminal state. Nothing is retried.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional, List, Union

from loguru import logger

from cutout.config import PipelineConfig
from cutout.core.contracts import (
    CompositeOutput,
    PipelineRun,
    PipelineStage,
    Segment,
    SourceImage,
)
from cutout.core.errors import CutoutError, SegmentationError
from cutout.core.progress import (
    ProgressReporter,
    ReporterSink,
    ScaledSink,
    as_sink,
)
from cutout.segmentation.backends import SegmentationModel
from cutout.segmentation.mask_resampler import resample_mask
from cutout.segmentation.mask_selector import select_foreground
from cutout.segmentation.session import SegmentationSession
from cutout.segmentation.validation import validate_segments
from cutout.compositing.codec import decode_image
from cutout.compositing.compositor import Compositor
from cutout.compositing.feathering import FeatheringEngine


_TRANSITIONS = {
    PipelineStage.IDLE: {PipelineStage.INITIALIZING},
    PipelineStage.INITIALIZING: {PipelineStage.READY},
    PipelineStage.READY: {PipelineStage.SEGMENTING},
    PipelineStage.SEGMENTING: {PipelineStage.RESAMPLING},
    PipelineStage.RESAMPLING: {PipelineStage.FEATHERING},
    PipelineStage.FEATHERING: {PipelineStage.COMPOSITING},
    PipelineStage.COMPOSITING: {PipelineStage.ENCODING},
    PipelineStage.ENCODING: {PipelineStage.COMPLETE},
}

# Progress bands (percent) for the pipeline-level stream
_INIT_BAND = (0, 20)
_PROCESSING = 20
_GENERATING = 70
_FINALIZING = 90


def advance(run: PipelineRun, stage: PipelineStage) -> None:
    """Move a run to the next stage, rejecting illegal transitions."""
    if stage not in _TRANSITIONS.get(run.stage, set()):
        raise RuntimeError(f"Illegal pipeline transition {run.stage.value} -> {stage.value}")
    run.stage = stage
    run.history.append(stage)


def fail(run: PipelineRun, error: BaseException) -> None:
    """Move a run to Failed, recording the error kind."""
    if run.stage.is_terminal:
        raise RuntimeError(f"Cannot fail a run that is already {run.stage.value}")
    run.failure_kind = getattr(error, "kind", "internal")
    run.error_message = str(error)
    run.stage = PipelineStage.FAILED
    run.history.append(PipelineStage.FAILED)


class BackgroundRemovalPipeline:
    """
    Main pipeline.

    Guarantees:
    - Stage order is NEVER reordered
    - Output dimensions equal input dimensions
    - RGB is never modified, only alpha
    - On failure no partial output is returned
    - Only the session's model handle outlives a request
    """

    def __init__(
        self,
        session: SegmentationSession,
        config: Optional[PipelineConfig] = None,
    ):
        """
        Initialize pipeline.

        Args:
            session: Shared segmentation session
            config: Pipeline configuration
        """
        self.session = session
        self.config = config or PipelineConfig()

        self._feathering = FeatheringEngine(self.config.feathering, workers=self.config.workers)
        self._compositor = Compositor(
            workers=self.config.workers,
            png_compression=self.config.png_compression,
        )

        self.last_run: Optional[PipelineRun] = None

    @classmethod
    def from_config(
        cls,
        config: Optional[PipelineConfig] = None,
        backend_name: str = "transformers",
    ) -> BackgroundRemovalPipeline:
        """Build a pipeline with a fresh session for the configured model."""
        config = config or PipelineConfig()
        return cls(SegmentationSession.create(backend_name, config.model), config)

    # ============================================================
    # PUBLIC API
    # ============================================================

    def process(self, file_bytes: bytes, progress_sink=None) -> CompositeOutput:
        """
        Remove the background from an encoded image.

        Args:
            file_bytes: Encoded input image
            progress_sink: ProgressSink or (stage, percent) callable

        Returns:
            CompositeOutput with RGBA pixels and PNG bytes

        Raises:
            ImageDecodeError, ModelInitError, SegmentationError,
            NoForegroundError, EncodingError
        """
        run = PipelineRun()
        self.last_run = run
        reporter = ProgressReporter(as_sink(progress_sink))

        try:
            reporter.report("Preparing image...", 0)
            image = decode_image(file_bytes)
        except Exception as e:
            self._fail(run, e)
            raise

        return self._execute(image, run, reporter)

    def remove_background(self, image: SourceImage, progress_sink=None) -> CompositeOutput:
        """Same as process() for an already decoded image."""
        run = PipelineRun()
        self.last_run = run
        reporter = ProgressReporter(as_sink(progress_sink))
        reporter.report("Preparing image...", 0)
        return self._execute(image, run, reporter)

    def process_file(
        self,
        input_path: Union[str, Path],
        output_path: Optional[Union[str, Path]] = None,
        progress_sink=None,
    ) -> CompositeOutput:
        """
        Process an image file and optionally write the PNG result.

        The output file is written only after the whole pipeline succeeded.
        """
        data = Path(input_path).read_bytes()
        output = self.process(data, progress_sink)

        if output_path is not None:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(output.encoded)
            logger.info(f"Wrote {output.width}x{output.height} cutout to {output_path}")

        return output

    # ============================================================
    # STAGES
    # ============================================================

    def _execute(
        self,
        image: SourceImage,
        run: PipelineRun,
        reporter: ProgressReporter,
    ) -> CompositeOutput:
        pipeline_start = time.perf_counter()

        try:
            output = self._run_stages(image, run, reporter)
        except Exception as e:
            self._fail(run, e)
            raise

        total_latency = (time.perf_counter() - pipeline_start) * 1000

        logger.info(
            f"Background removed from {image.width}x{image.height} image "
            f"('{output.label}', {total_latency:.1f}ms)"
        )
        return output

    def _run_stages(
        self,
        image: SourceImage,
        run: PipelineRun,
        reporter: ProgressReporter,
    ) -> CompositeOutput:
        # STEP 1: Session
        self._enter(run, PipelineStage.INITIALIZING)
        model = self.session.ensure_ready(ScaledSink(ReporterSink(reporter), *_INIT_BAND))
        self._enter(run, PipelineStage.READY)

        # STEP 2: Inference + selection
        reporter.report("Processing image...", _PROCESSING)
        self._enter(run, PipelineStage.SEGMENTING)
        segments = self._segment(model, image)
        foreground = select_foreground(segments)
        reporter.report("Generating transparent image...", _GENERATING)

        # STEP 3: Resample
        self._enter(run, PipelineStage.RESAMPLING)
        resampled = resample_mask(
            foreground.mask,
            image.width,
            image.height,
            method=self.config.resample_method,
        )

        # STEP 4: Feather
        self._enter(run, PipelineStage.FEATHERING)
        alpha_mask = self._feathering.feather(resampled)

        # STEP 5: Composite
        self._enter(run, PipelineStage.COMPOSITING)
        pixels = self._compositor.composite(image, alpha_mask)

        # STEP 6: Encode
        self._enter(run, PipelineStage.ENCODING)
        reporter.report("Finalizing...", _FINALIZING)
        encoded = self._compositor.encode(pixels)

        self._enter(run, PipelineStage.COMPLETE)
        reporter.report("Complete!", 100)

        return CompositeOutput(
            width=image.width,
            height=image.height,
            pixels=pixels,
            encoded=encoded,
            label=foreground.label,
        )

    def _segment(self, model: SegmentationModel, image: SourceImage) -> List[Segment]:
        """Run inference and validate the result at the boundary."""
        try:
            raw = model.infer(image)
        except CutoutError:
            raise
        except Exception as e:
            raise SegmentationError(f"Segmentation inference failed: {e}") from e

        return validate_segments(raw)

    def _enter(self, run: PipelineRun, stage: PipelineStage) -> None:
        now = time.perf_counter()
        previous = run.stage
        if run.stage_started_at is not None:
            run.stage_times_ms[previous.value] = (now - run.stage_started_at) * 1000
        advance(run, stage)
        run.stage_started_at = now
        logger.debug(f"Pipeline stage: {previous.value} -> {stage.value}")

    def _fail(self, run: PipelineRun, error: Exception) -> None:
        stage = run.stage
        fail(run, error)
        logger.error(f"Pipeline failed during {stage.value} ({run.failure_kind}): {error}")
