"""Default prompt content and the bootstrap admin account."""

import logging

from psychprep.auth.utils import hash_password
from psychprep.db import ContentStore
from psychprep.models import ContentKind

logger = logging.getLogger(__name__)

STUDENT_SDT_QUESTIONS = [
    "What do your parents think about you?",
    "What do your teachers think about you?",
    "What do your friends think about you?",
    "What do you think about yourself?",
    "What would you like to be?",
]

PROFESSIONAL_SDT_QUESTIONS = [
    "What do your colleagues think about you?",
    "What does your manager think of you?",
    "What do your subordinates think of you?",
    "What do you think about yourself?",
    "Where do you see yourself in the future?",
]

WAT_WORDS = [
    "Success", "Failure", "Leadership", "Challenge", "Family",
    "Friend", "Enemy", "Love", "Hate", "Work",
    "Play", "Fear", "Courage", "Money", "Health",
    "Happiness", "Sadness", "Life", "Death", "Future",
]

SRT_SCENARIOS = [
    "You are walking in a park when you notice a child crying and looking lost. What would you do?",
    "Your friend asks to borrow a significant amount of money. You know they have not repaid "
    "previous loans. How would you respond?",
    "You witness a colleague taking credit for your work during a meeting. What would you do?",
    "You find a wallet containing a large sum of money and identification. "
    "What actions would you take?",
    "You are offered a promotion that requires relocating to another city, but your family "
    "prefers to stay. How would you handle this situation?",
    "You notice a team member struggling with their workload but not asking for help. "
    "What would you do?",
    "While shopping, you notice someone shoplifting. How would you react?",
    "You receive an email that appears to be from your bank requesting personal information. "
    "What steps would you take?",
    "A friend shares confidential information about another mutual friend. How would you respond?",
    "You're driving and see an accident happen right in front of you. What would you do?",
]

DEFAULT_CONTENT = {
    ContentKind.SDT_STUDENT: STUDENT_SDT_QUESTIONS,
    ContentKind.SDT_PROFESSIONAL: PROFESSIONAL_SDT_QUESTIONS,
    ContentKind.WAT: WAT_WORDS,
    ContentKind.SRT: SRT_SCENARIOS,
}


def ensure_admin(store: ContentStore, username: str, email: str, password: str) -> bool:
    """Create the bootstrap admin unless an account already holds its name or email."""
    if store.get_user_by_email(email) or store.get_user_by_username(username):
        return False
    store.create_user(username, email, hash_password(password), is_admin=True)
    logger.info(f"Created admin account: {username} <{email}>")
    return True


def seed_default_content(store: ContentStore):
    """Fill empty content tables with the stock prompts."""
    for kind, items in DEFAULT_CONTENT.items():
        if store.count_content(kind) == 0:
            store.merge_content(kind, items)
            logger.info(f"Seeded {len(items)} default {kind.value} entries")
