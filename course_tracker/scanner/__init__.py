from .frame_extractor import FFmpegFrameExtractor, FrameExtractionError, FrameExtractor
from .thumbnails import ThumbnailCacheGenerator, merge_by_id
