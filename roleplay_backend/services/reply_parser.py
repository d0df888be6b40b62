import json
import logging
from typing import NamedTuple

from pydantic import ValidationError

from roleplay_backend.services.llm_handler import METADATA_DELIMITER
from roleplay_backend.services.schemas import ConversationStatus, ReplyMetadata

logger = logging.getLogger(__name__)

# Shown instead of an empty or "..." reply
FALLBACK_CONTENT = "不好意思，我刚才走神了。你可以再说一遍吗？"
FALLBACK_TRANSLATION = "Sorry, my mind wandered for a moment. Could you say that again?"


class ParsedReply(NamedTuple):
    content: str
    metadata: ReplyMetadata
    used_fallback: bool = False


def parse_metadata(raw_json: str) -> ReplyMetadata:
    """Never raises. Anything unreadable becomes {translation: "", status: ACTIVE}."""
    raw_json = (raw_json or "").strip()
    if not raw_json:
        return ReplyMetadata()

    try:
        data = json.loads(raw_json)
    except ValueError as e:
        logger.warning("Failed to parse reply metadata: %s", e)
        return ReplyMetadata()

    if not isinstance(data, dict):
        logger.warning("Reply metadata is not an object: %r", data)
        return ReplyMetadata()

    translation = data.get("translation")
    status = data.get("status")
    if not isinstance(status, str) or status not in ConversationStatus.__members__:
        if status is not None:
            logger.warning("Unknown reply status %r, keeping conversation active", status)
        status = ConversationStatus.ACTIVE

    try:
        return ReplyMetadata(
            translation=translation if isinstance(translation, str) else "",
            status=status,
        )
    except ValidationError as e:
        logger.warning("Reply metadata rejected: %s", e)
        return ReplyMetadata()


def parse_reply(raw: str) -> ParsedReply:
    """
    Splits a fully assembled model reply on the first ---METADATA--- marker.

    Used for both batch replies and joined stream buffers. Empty or
    placeholder content is swapped for the in-character fallback line.
    """
    head, _, tail = (raw or "").partition(METADATA_DELIMITER)
    content = head.strip()
    metadata = parse_metadata(tail)

    if is_degenerate(content):
        logger.info("Model returned an empty reply, using fallback line")
        return ParsedReply(
            content=FALLBACK_CONTENT,
            metadata=ReplyMetadata(translation=FALLBACK_TRANSLATION, status=metadata.status),
            used_fallback=True,
        )

    return ParsedReply(content=content, metadata=metadata)


def is_degenerate(content: str) -> bool:
    stripped = content.strip()
    return not stripped or set(stripped) <= {".", "…", "。"}
