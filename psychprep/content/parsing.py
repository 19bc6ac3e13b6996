import re


def parse_word_list(text: str) -> list[str]:
    """One word per line; blank lines and surrounding whitespace dropped."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_scenarios(text: str) -> list[str]:
    """Scenarios are paragraphs separated by one or more empty lines."""
    paragraphs = re.split(r"\r?\n[ \t]*\r?\n", text)
    return [p.strip() for p in paragraphs if p.strip()]
