"""Failure types raised inside the OCR pipeline.

None of these escape :class:`src.ocr.pipeline.OCRPipeline`; they are caught
at the pipeline seam and turned into a degraded result.
"""


class OCRPipelineError(Exception):
    """Base class for recoverable OCR pipeline failures."""


class ImageConversionError(OCRPipelineError):
    """The conditioned image cannot be turned into a recognizable raster."""


class RecognitionEngineError(OCRPipelineError):
    """The text recognition engine failed to process an image."""


class PreprocessingStepError(OCRPipelineError):
    """A preprocessing step failed and was skipped."""
