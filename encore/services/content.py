"""
Single-shot post generator.

Unlike the consultative chat, this writes one ready-to-publish post for a
platform from a topic, optional details and a tone, grounded in the active
artist's profile and knowledge base.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from ..core.errors import EmptyInputError
from .knowledge import KnowledgeStore
from .profile import ProfileStore
from .providers import ProviderGateway, SendOptions

logger = logging.getLogger(__name__)

PROFILE_CHARS = 1500
KNOWLEDGE_CHARS = 2000
GENERATION_MAX_TOKENS = 1024

TWITTER_LIMIT = 280
DEFAULT_LIMIT = 10000

_HASHTAG_RE = re.compile(r"#\w+")
_EMOJI_RE = re.compile("[\U0001F300-\U0001F9FF]")


@dataclass(frozen=True)
class PlatformConfig:
    name: str
    max_length: int
    tips: tuple[str, ...]
    specialist: str


PLATFORM_CONFIGS: dict[str, PlatformConfig] = {
    "instagram": PlatformConfig("Instagram", 2200, ("Use emojis", "Hashtags"), "an Instagram marketing specialist"),
    "facebook": PlatformConfig("Facebook", 5000, ("Tell stories",), "a Facebook specialist"),
    "twitter": PlatformConfig("Twitter/X", 280, ("Short and direct",), "a Twitter specialist"),
    "tiktok": PlatformConfig("TikTok", 2200, ("Be creative",), "a TikTok specialist"),
    "email": PlatformConfig("Email", 10000, ("Personalize",), "an email marketing specialist"),
    "press": PlatformConfig("Press Release", 15000, ("Professional",), "a press release specialist"),
}


def platform_config(content_type: str) -> PlatformConfig:
    return PLATFORM_CONFIGS.get((content_type or "").lower(), PLATFORM_CONFIGS["instagram"])


def manual_template(content_type: str, topic: str) -> str:
    return f"[DRAFT {content_type.upper()}]\nTopic: {topic}\n\n[Write your post here...]"


def format_generated_content(text: str, content_type: str) -> str:
    """Strip markdown emphasis; Twitter posts are cut to fit 280 characters."""
    formatted = text.strip().replace("**", "").replace("*", "")
    if content_type == "twitter" and len(formatted) > TWITTER_LIMIT:
        formatted = formatted[:TWITTER_LIMIT - 3] + "..."
    return formatted


def content_metadata(content: str, content_type: str) -> dict:
    limit = TWITTER_LIMIT if content_type == "twitter" else DEFAULT_LIMIT
    return {
        "characters": len(content),
        "words": len(content.split()),
        "hashtags": len(_HASHTAG_RE.findall(content)),
        "emojis": len(_EMOJI_RE.findall(content)),
        "max_length": platform_config(content_type).max_length,
        "within_limit": len(content) <= limit,
    }


class ContentGenerator:
    def __init__(
        self,
        gateway: ProviderGateway,
        profile: ProfileStore,
        knowledge: Optional[KnowledgeStore] = None,
        response_language: str = "Brazilian Portuguese",
    ):
        self.gateway = gateway
        self.profile = profile
        self.knowledge = knowledge
        self.response_language = response_language

    def _system_prompt(self, config: PlatformConfig) -> str:
        bio = self.profile.profile.bio
        artist = bio.name or "the artist"
        genre = bio.genre or "music"
        profile_text = self.profile.formatted_context()[:PROFILE_CHARS]
        knowledge_text = self.knowledge.context_block(KNOWLEDGE_CHARS) if self.knowledge else ""

        return (
            "You are a music marketing assistant who helps artists.\n"
            f"Context about {artist} ({genre}):\n"
            f"{profile_text}\n"
            f"{knowledge_text}\n\n"
            f"You are {config.specialist}. Always answer in {self.response_language}.\n"
            "Use the strategies and briefings from the knowledge base so the content "
            "matches how the artist communicates."
        )

    @staticmethod
    def _user_prompt(config: PlatformConfig, topic: str, details: str, tone: str) -> str:
        lines = [f'Write a post for {config.name} about: "{topic}"']
        if details:
            lines.append(f"Additional details: {details}")
        lines.append(f"Desired tone: {tone}")
        lines.append("")
        lines.append(
            "IMPORTANT: output ONLY the post text, with no introduction, explanation "
            "or comments. It must be ready to publish."
        )
        return "\n".join(lines)

    async def generate(self, content_type: str, topic: str, details: str = "", tone: str = "casual") -> str:
        topic = (topic or "").strip()
        if not topic:
            raise EmptyInputError("A topic is required.")

        content_type = (content_type or "instagram").lower()
        if self.gateway.manual_mode:
            return manual_template(content_type, topic)

        config = platform_config(content_type)
        messages = [
            {"role": "system", "content": self._system_prompt(config)},
            {"role": "user", "content": self._user_prompt(config, topic, details.strip(), tone)},
        ]
        reply = await self.gateway.send(messages, SendOptions(max_tokens=GENERATION_MAX_TOKENS))
        logger.info("Generated %s post (%d chars)", content_type, len(reply.content))
        return format_generated_content(reply.content, content_type)
