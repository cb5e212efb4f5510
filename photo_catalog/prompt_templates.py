"""
Prompt templates for the description service.
"""

SYSTEM_PROMPT = (
    "You are a photo cataloguing assistant. You describe photographs accurately "
    "so that they can be found later by searching their descriptions."
)

DESCRIPTION_PROMPT = (
    "Describe this photo in one short paragraph. Mention the main subjects, "
    "what they are doing, the setting or location, notable objects, colours, "
    "lighting and time of day when visible. Answer with the description only, "
    "without any introduction, list formatting or markdown."
)


def get_description_prompt() -> str:
    """
    Get the instruction sent with every image.

    Returns:
        Prompt string
    """
    return DESCRIPTION_PROMPT


def clean_description(text: str) -> str:
    """
    Normalise a model answer into a plain description.

    Strips surrounding whitespace and a wrapping markdown code fence or quotes.

    Args:
        text: Raw message content from the model

    Returns:
        Cleaned description, possibly empty
    """
    if not text:
        return ""
    cleaned = text.strip()
    if cleaned.startswith("```") and cleaned.endswith("```") and len(cleaned) >= 6:
        cleaned = cleaned[3:-3].strip()
        # Drop a language tag on the opening fence
        first_line, _, rest = cleaned.partition("\n")
        if rest and first_line.isalpha():
            cleaned = rest.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in ('"', "'"):
        cleaned = cleaned[1:-1].strip()
    return cleaned
