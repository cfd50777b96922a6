"""Image loader node."""

from chart_judge.models import LoadedImage, PipelineState, ProcessingError
from chart_judge.utils import cv_utils


def load(path: str) -> LoadedImage | ProcessingError:
    return cv_utils.load_image(path)


def load_node(state: PipelineState) -> PipelineState:
    """
    Decode the source image.

    Updates state with:
    - image: read-only BGR pixel buffer
    - errors: a DECODE_ERROR when the file is missing, unsupported or corrupt
    """
    image = load(state.image_path)
    if isinstance(image, ProcessingError):
        return state.model_copy(update={"errors": state.errors + [image]})
    return state.model_copy(update={"image": image})
