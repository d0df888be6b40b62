from datetime import datetime, time
from typing import Dict, Optional

from roleplay_backend.services.errors import NotFoundError
from roleplay_backend.services.schemas import CORRECTION_CATEGORIES, ConversationStatus, utcnow
from roleplay_backend.state.store import ConversationStore


def get_dashboard_stats(store: ConversationStore, user_id: str, now: Optional[datetime] = None) -> Dict:
    """Today's progress for one user, plus their five most recent conversations."""
    now = now or utcnow()
    start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    end = datetime.combine(now.date(), time.max, tzinfo=now.tzinfo)

    def is_today(ts: datetime) -> bool:
        return start <= ts <= end

    conversations = store.list_conversations(user_id)
    todays = [c for c in conversations if is_today(c.updated_at)]

    completed_today = sum(1 for c in todays if c.status == ConversationStatus.COMPLETED)
    flashcards_today = sum(1 for f in store.list_flashcards(user_id) if is_today(f.created_at))

    scored = [c.score for c in todays if c.score is not None]
    average_score = round(sum(scored) / len(scored)) if scored else 0

    # Mistake categorization, unknown categories count as Other
    mistake_counts = {category: 0 for category in CORRECTION_CATEGORIES}
    for conversation in todays:
        for correction in conversation.corrections:
            key = correction.category if correction.category in mistake_counts else "Other"
            mistake_counts[key] += 1

    recent = sorted(conversations, key=lambda c: c.updated_at, reverse=True)[:5]
    recent_activity = []
    for conversation in recent:
        try:
            title = store.get_scenario(conversation.scenario_id).title
        except NotFoundError:
            title = ""
        recent_activity.append({
            "conversation_id": conversation.id,
            "scenario_id": conversation.scenario_id,
            "scenario_title": title,
            "status": conversation.status.value,
            "score": conversation.score,
            "updated_at": conversation.updated_at.isoformat(),
        })

    user = store.get_user(user_id)
    return {
        "completed_today": completed_today,
        "flashcards_today": flashcards_today,
        "average_score": average_score,
        "mistake_counts": mistake_counts,
        "recent_activity": recent_activity,
        "completed_scenario_ids": list(user.completed_scenario_ids) if user else [],
    }
