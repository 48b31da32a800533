"""
OpenAI integration for study guide, briefing document, chat and note generation.

This module builds deterministic prompts from a transcript excerpt and optional
video metadata, sends them to the OpenAI chat completions API once, and returns
the model's text verbatim.
"""

import logging
from typing import Any, Dict, List, Optional
from openai import AsyncOpenAI

from .config import Configuration
from .error_handling import ConfigurationError, InvalidRequestError, UpstreamError
from .models import ContentType, VideoMetadata

logger = logging.getLogger(__name__)


# Section outlines. The metadata-enhanced variants add video overview sections.
ENHANCED_OUTLINES: Dict[ContentType, List[str]] = {
    ContentType.STUDY_GUIDE: [
        "**Video Overview** - Summary of the video including title, channel, and key details",
        "**Main Topics & Key Concepts** - Core subjects covered",
        "**Important Definitions** - Key terms and their meanings",
        "**Detailed Content Breakdown** - Section-by-section analysis",
        "**Key Takeaways** - Most important points to remember",
        "**Study Questions** - Questions to test understanding",
        "**Additional Resources** - Related topics to explore",
    ],
    ContentType.BRIEFING_DOC: [
        "**Executive Summary** - High-level overview of the video content",
        "**Video Details** - Title, channel, metrics, and publication info",
        "**Content Analysis** - Detailed breakdown of the video content",
        "**Key Points & Insights** - Most important information presented",
        "**Main Arguments/Findings** - Core messages and conclusions",
        "**Actionable Recommendations** - What viewers should do with this information",
        "**Conclusion** - Summary and final thoughts",
        "**Appendix** - Additional details and context",
    ],
}

STANDARD_OUTLINES: Dict[ContentType, List[str]] = {
    ContentType.STUDY_GUIDE: [
        "**Main Topics & Key Concepts**",
        "**Important Definitions**",
        "**Key Takeaways**",
        "**Study Questions**",
        "**Summary Points**",
        "**Additional Resources to Explore**",
    ],
    ContentType.BRIEFING_DOC: [
        "**Executive Summary**",
        "**Key Points & Insights**",
        "**Main Arguments/Findings**",
        "**Actionable Recommendations**",
        "**Conclusion**",
        "**Next Steps**",
    ],
}

DOCUMENT_NAMES = {
    ContentType.STUDY_GUIDE: ("a comprehensive study guide", "study guide"),
    ContentType.BRIEFING_DOC: ("a professional briefing document", "briefing document"),
}

FORMAT_INSTRUCTIONS = {
    ContentType.STUDY_GUIDE: "Format the response in clear markdown with proper headings and bullet points.",
    ContentType.BRIEFING_DOC: "Format as a professional briefing document in markdown.",
}


class ContentGenerator:
    """
    OpenAI-powered content generator.

    Handles credential checks, prompt templating and a single API call per
    request. Retrying and degrading are the fallback chain's job, not this one's.
    """

    def __init__(self, config: Configuration, client: Optional[AsyncOpenAI] = None):
        """
        Initialize the content generator.

        Args:
            config: Configuration with API key, model and prompt budgets
            client: Optional pre-built AsyncOpenAI client (test doubles go here)
        """
        self.api_key = config.openai_api_key
        self.model = config.openai_model
        self.timeout = config.openai_timeout
        self.max_tokens = config.openai_max_tokens
        self.temperature = config.openai_temperature
        self.transcript_excerpt_chars = config.transcript_excerpt_chars
        self.description_excerpt_chars = config.description_excerpt_chars
        self.note_context_chars = config.note_context_chars
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self) -> AsyncOpenAI:
        if not self.is_configured:
            raise ConfigurationError("OPENAI_API_KEY")
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
            logger.info(f"Initialized OpenAI content generator with model: {self.model}")
        return self._client

    def build_video_context(self, metadata: VideoMetadata) -> str:
        """Format the metadata block embedded in enhanced prompts."""
        description = (metadata.description or "")[:self.description_excerpt_chars]
        tags = ', '.join(metadata.tags) if metadata.tags else 'None'
        return "\n".join([
            f"Video Title: {metadata.title}",
            f"Channel: {metadata.channel_title}",
            f"Published: {metadata.published_at}",
            f"Duration: {metadata.duration}",
            f"Views: {metadata.view_count}",
            f"Likes: {metadata.like_count}",
            f"Description: {description}...",
            f"Tags: {tags}",
        ])

    def build_prompt(
        self,
        content_type: ContentType,
        transcript: str,
        metadata: Optional[VideoMetadata] = None
    ) -> str:
        """
        Build the generation prompt for a study guide or briefing document.

        Args:
            content_type: STUDY_GUIDE or BRIEFING_DOC
            transcript: Full transcript text (truncated to the excerpt budget)
            metadata: Optional metadata; switches to the enhanced outline

        Returns:
            Prompt string

        Raises:
            InvalidRequestError: If the content type cannot be generated
        """
        if content_type not in DOCUMENT_NAMES:
            raise InvalidRequestError('Invalid type. Must be "study-guide" or "briefing-doc"')

        excerpt = transcript[:self.transcript_excerpt_chars]
        long_name, short_name = DOCUMENT_NAMES[content_type]

        if metadata is None:
            outline = STANDARD_OUTLINES[content_type]
            return "\n".join([
                f"Create {long_name} based on this YouTube video transcript. Include:",
                *[f"{i}. {section}" for i, section in enumerate(outline, 1)],
                "",
                FORMAT_INSTRUCTIONS[content_type],
                "",
                f"Transcript: {excerpt}",
            ])

        outline = ENHANCED_OUTLINES[content_type]
        return "\n".join([
            f"Create {long_name} for this YouTube video. Use both the video metadata and "
            f"transcript to create detailed content.",
            "",
            "VIDEO INFORMATION:",
            self.build_video_context(metadata),
            "",
            "INSTRUCTIONS:",
            f"Create a {short_name} with the following sections:",
            *[f"{i}. {section}" for i, section in enumerate(outline, 1)],
            "",
            FORMAT_INSTRUCTIONS[content_type],
            "",
            "VIDEO TRANSCRIPT:",
            excerpt,
        ])

    async def generate(
        self,
        content_type: ContentType,
        transcript: str,
        metadata: Optional[VideoMetadata] = None
    ) -> str:
        """
        Generate a study guide or briefing document.

        Raises:
            ConfigurationError: If no OpenAI API key is configured
            UpstreamError: If the provider call fails
        """
        # Credentials are checked before any prompt work or network call
        self._get_client()
        prompt = self.build_prompt(content_type, transcript, metadata)
        logger.info(f"Generating {content_type.value} ({'enhanced' if metadata else 'standard'} prompt, "
                    f"{len(prompt)} chars)")
        return await self._complete(prompt)

    def build_chat_prompt(
        self,
        message: str,
        video_url: Optional[str] = None,
        video_title: Optional[str] = None,
        transcript: Optional[str] = None
    ) -> str:
        """Pick one of three chat prompts depending on how much video context is available."""
        if transcript and video_title:
            return f"""You are an AI assistant helping users understand and analyze YouTube videos.

The user is asking about this video:
Title: "{video_title}"
URL: {video_url}

Video Transcript (first {self.transcript_excerpt_chars} characters):
{transcript[:self.transcript_excerpt_chars]}

User Question: "{message}"

Please provide a helpful, accurate response based on the video content. If the question is about specific details in the video, reference the transcript. If it's a general question, provide useful information while acknowledging the video context.

Guidelines:
- Be conversational and helpful
- Reference specific parts of the video when relevant
- If you can't find the answer in the transcript, say so clearly
- Provide actionable insights when possible
- Keep responses focused and well-structured
- Use markdown formatting for better readability"""

        if video_url and video_title:
            return f"""You are an AI assistant helping users with YouTube videos.

The user has selected this video: "{video_title}" ({video_url})
However, the video transcript could not be accessed (it may not have captions or may not be publicly available).

User Question: "{message}"

Please provide a helpful response. Since you don't have access to the video content:
- Acknowledge that you can't analyze the specific video content
- Provide general helpful information related to their question
- Suggest ways they might find the information they're looking for
- Offer to help with other aspects of video analysis

Be conversational, helpful, and honest about the limitations."""

        return f"""You are an AI assistant for a YouTube study application.

The user hasn't selected a specific YouTube video yet.

User Question: "{message}"

Please provide a helpful response. Since no video is selected:
- Acknowledge that no video is currently selected
- Provide general helpful information if their question is about YouTube, video analysis, or study methods
- Suggest they select a YouTube video first if they want video-specific analysis
- Offer guidance on how to use the application effectively

Be conversational, helpful, and guide them toward productive use of the application."""

    async def chat(
        self,
        message: str,
        video_url: Optional[str] = None,
        video_title: Optional[str] = None,
        transcript: Optional[str] = None
    ) -> str:
        """Answer a conversational question, using the transcript when available."""
        self._get_client()
        prompt = self.build_chat_prompt(message, video_url, video_title, transcript)
        return await self._complete(prompt)

    def build_note_prompt(
        self,
        note: str,
        video_title: Optional[str],
        video_url: str,
        transcript: Optional[str] = None
    ) -> str:
        video_context = ""
        if transcript and len(transcript) > 100:
            video_context = (f"\n\nVideo Context (first {self.note_context_chars} characters):\n"
                             f"{transcript[:self.note_context_chars]}")

        return f"""You are an AI assistant helping to analyze and enhance user notes about a YouTube video.

Video: "{video_title}"
URL: {video_url}{video_context}

User's Note:
"{note}"

Please provide a helpful analysis of this note including:
1. **Key Insights**: What are the main points or insights in this note?
2. **Connections**: How does this note relate to the video content?
3. **Suggestions**: What additional points or questions might be worth exploring?
4. **Organization**: How could this note be structured or categorized?
5. **Action Items**: Are there any actionable takeaways or next steps?

Format your response in clear markdown with proper headings. Be concise but insightful."""

    async def analyze_note(
        self,
        note: str,
        video_title: Optional[str],
        video_url: str,
        transcript: Optional[str] = None
    ) -> str:
        """Produce an AI analysis of a user's free-text note."""
        self._get_client()
        prompt = self.build_note_prompt(note, video_title, video_url, transcript)
        return await self._complete(prompt)

    async def ping(self) -> str:
        """Send a tiny prompt to confirm the provider answers."""
        self._get_client()
        return await self._complete(
            "Say hello and confirm that the AI service is working properly. Keep it short.",
            max_tokens=50
        )

    async def list_models(self) -> List[Dict[str, Any]]:
        """List models available to the configured credential."""
        client = self._get_client()
        try:
            page = await client.models.list()
        except Exception as e:
            logger.error(f"Failed to list models: {e}")
            raise UpstreamError("Failed to list models", details=str(e))
        return [{"id": model.id, "ownedBy": getattr(model, "owned_by", None)} for model in page.data]

    async def _complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens or self.max_tokens,
                temperature=self.temperature,
            )
        except Exception as e:
            logger.error(f"OpenAI request failed: {e}")
            raise UpstreamError("Failed to generate content", details=str(e))

        content = response.choices[0].message.content or ""
        logger.info(f"Generated content length: {len(content)}")
        return content
