from .base import Workload
from .image import ImageMorphologyWorkload
from .vector_add import LIST_SIZE, VectorAddWorkload

__all__ = ["Workload", "VectorAddWorkload", "ImageMorphologyWorkload", "LIST_SIZE"]
