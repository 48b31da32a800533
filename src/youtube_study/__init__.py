"""
youtube-study-ai: study guides and briefing documents from YouTube videos.

This package fetches YouTube transcripts and metadata, generates derivative
content with a hosted LLM, and keeps a per-user history of generated artifacts.
"""

__version__ = "0.1.0"
__author__ = "youtube-study-ai"
__description__ = "Study guides, briefing documents and notes generated from YouTube videos"
