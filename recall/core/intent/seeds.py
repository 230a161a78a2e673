"""Curated seed utterances for the learned classification layers.

The semantic matcher uses these as its nearest-neighbour reference set and
the statistical fallback is trained on them at startup. The corpus is
read-only at runtime.
"""

from __future__ import annotations

from .taxonomy import IntentType, SeedExample


def _seeds(intent: IntentType, *rows: str | tuple[str, str | None, str | None]) -> list[SeedExample]:
    examples = []
    for row in rows:
        if isinstance(row, tuple):
            text, confidence_hint, complexity_hint = row
            examples.append(SeedExample(text, intent, confidence_hint, complexity_hint))
        else:
            examples.append(SeedExample(row, intent))
    return examples


SEED_EXAMPLES: tuple[SeedExample, ...] = tuple(
    _seeds(
        IntentType.MEMORY_STORE,
        ("remember this", "high", "simple"),
        ("save this for later", "high", "simple"),
        ("remember I'm meeting John at 3pm", "high", "simple"),
        "jot down this meeting",
        "note that I have a dentist appointment on Friday",
        "store this information",
        "keep track of my schedule",
        "remember my parking spot is B-12",
        "save my favorite restaurant",
        "add this to my notes",
        "my sister's birthday is in June",
        "I had lunch with Sarah today",
        "I went to the gym this morning",
        ("I have a meeting with the design team tomorrow", "medium", "ambiguous"),
        ("don't forget my appointment", "medium", "ambiguous"),
    )
    + _seeds(
        IntentType.MEMORY_RETRIEVE,
        ("what did I say", "high", "simple"),
        ("what's on my calendar", "high", "simple"),
        ("when is my next meeting", "high", "simple"),
        "do you remember my wifi password",
        "what did I save about the project",
        "where did I park",
        "what's my flight number",
        "show me my reminders",
        "what meetings do I have today",
        "what's planned for this week",
        "what do I have tomorrow",
        "do I have anything planned this weekend",
        "when is my doctor's appointment",
        ("what was decided in that meeting", "medium", "ambiguous"),
        ("when am I free", "medium", "ambiguous"),
    )
    + _seeds(
        IntentType.MEMORY_UPDATE,
        ("update my address", "high", "simple"),
        ("change my phone number", "high", "simple"),
        "my meeting moved to 4pm",
        "actually my birthday is in March",
        "correct that, it's on Thursday",
        "the dentist appointment is now on Monday",
        "I no longer work at Acme",
        "reschedule my call with Tom to tomorrow",
        ("my email changed", "medium", "ambiguous"),
    )
    + _seeds(
        IntentType.MEMORY_DELETE,
        ("forget what I told you", "high", "simple"),
        ("delete my last note", "high", "simple"),
        "remove the meeting from my calendar",
        "erase my parking spot",
        "forget about the dinner on Friday",
        "clear my reminders",
        "cancel my appointment with Dr. Lee",
        ("never mind that last thing", "low", "ambiguous"),
    )
    + _seeds(
        IntentType.COMMAND,
        ("take a screenshot", "high", "simple"),
        ("open my email", "high", "simple"),
        "draft a reply to this email",
        "help me respond to this message",
        "send a message to Alex",
        "schedule a call for tomorrow",
        "set a timer for ten minutes",
        "create a new document",
        "write a summary of this page",
        "play some music",
        "turn on do not disturb",
        "capture the screen",
        ("can you make this shorter", "medium", "ambiguous"),
    )
    + _seeds(
        IntentType.QUESTION,
        ("what is the capital of France", "high", "simple"),
        ("how long does it take to boil an egg", "high", "simple"),
        "how far is the moon from the earth",
        "why is the sky blue",
        "who wrote Pride and Prejudice",
        "explain how photosynthesis works",
        "what's the weather like in Paris",
        "how many ounces are in a pound",
        "when did the Second World War end",
        "tell me a fun fact",
        ("can you explain recursion", "medium", "ambiguous"),
        ("what time is it", "medium", "ambiguous"),
    )
    + _seeds(
        IntentType.GREETING,
        ("hello", "high", "simple"),
        ("hi there", "high", "simple"),
        ("good morning", "high", "simple"),
        "hey",
        "how are you doing",
        "what's up",
        "good evening",
        "goodbye",
        "see you later",
        "thanks, bye",
    )
)


def seeds_by_intent(
    seeds: tuple[SeedExample, ...] = SEED_EXAMPLES,
) -> dict[IntentType, list[SeedExample]]:
    """Partition a seed corpus by intent.

    Args:
        seeds: Corpus to partition

    Returns:
        Mapping of every intent to its examples (empty list when none)
    """
    grouped: dict[IntentType, list[SeedExample]] = {intent: [] for intent in IntentType}
    for seed in seeds:
        grouped[seed.intent].append(seed)
    return grouped


__all__ = ["SEED_EXAMPLES", "seeds_by_intent"]
