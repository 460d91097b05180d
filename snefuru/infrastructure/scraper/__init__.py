from .page_fetcher import PageFetcher, PageFetchError

__all__ = ["PageFetcher", "PageFetchError"]
