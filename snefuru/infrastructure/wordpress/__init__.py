from .wordpress_client import PublishResult, WordPressClient, WpCredentials

__all__ = ["PublishResult", "WordPressClient", "WpCredentials"]
