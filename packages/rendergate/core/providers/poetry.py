"""Seed poems and the prompts built around them.

A seed poem is drawn from a small phrase grammar: each template is a
space-separated list of word categories, with ``comma`` and ``period``
closing a line or a sentence. The seed is deliberately odd; an LLM
rewrites it into something readable before it is illustrated.
"""

from __future__ import annotations

import random

WORD_BANK: dict[str, tuple[str, ...]] = {
    "opener": (
        "Right now",
        "Tonight",
        "Long after midnight",
        "Somewhere past the harbor",
        "Under the copper moon",
        "Before the tide turned",
        "All through the thaw",
    ),
    "article": ("a", "the", "one", "some", "every", "a certain"),
    "adjective": (
        "validated",
        "velvet",
        "rusted",
        "luminous",
        "standard",
        "feral",
        "paper",
        "hollow",
        "borrowed",
        "electric",
        "salt-bitten",
        "quiet",
    ),
    "noun": (
        "plenum",
        "vampire",
        "lighthouse",
        "accordion",
        "orchard",
        "switchboard",
        "heron",
        "radio",
        "staircase",
        "lantern",
        "glacier",
        "ferry",
    ),
    "gerund": (
        "melting",
        "humming",
        "dithering",
        "unfolding",
        "drifting",
        "counting",
        "burning",
        "listening",
    ),
    "verb": (
        "ran",
        "sang",
        "waited",
        "forgot",
        "shivered",
        "opened",
        "dreamed",
        "fell apart",
    ),
    "adverb": (
        "not ever",
        "slowly",
        "in silence",
        "sideways",
        "again",
        "too softly",
        "without a map",
    ),
    "preposition": ("beneath", "beside", "inside", "across", "against", "toward"),
}

SEED_TEMPLATES: tuple[str, ...] = (
    "opener preposition article adjective noun gerund adverb comma "
    "article adjective noun verb adverb period",
    "article adjective noun is gerund preposition article noun comma "
    "article noun verb period article adjective noun is gerund adverb period",
    "opener comma article noun verb adverb comma "
    "preposition article adjective noun gerund period",
    "article noun and article adjective noun verb comma "
    "gerund preposition article adjective noun comma adverb period",
)

REWRITE_POEM_MODEL = "gpt-4.1"
REWRITE_POEM_TEMPERATURE = 0.65
REWRITE_POEM_MAX_TOKENS = 300

DEFAULT_POEM_STYLE = "\n".join(
    [
        "   - must be modern, contemporary, and clean.",
        "   - Avoid painterly kitsch, fantasy cliche, or greeting-card lighting",
        "   - Prefer editorial illustration, neo-surrealism, cinematic lighting",
        "   - Restrained color palette, subtle grain, crisp detail",
        "   - Artistic license is encouraged; decorative excess is not",
        "   - avoid a generic AI-generated look",
    ]
).strip()

_REWRITE_POEM_TEMPLATE = """
You are a poem-rewriter. Rewrite the INPUT POEM into a new poem that is clear, grammatical, and readable while preserving its vivid, unusual vocabulary and emotional movement.

INTENT
- Reduce syntactic opacity caused by overly dense or contorted poetic form.
- Preserve striking, strange, and colorful word choices whenever possible.
- When clarity requires it, you may adjust a word's case, tense, number, or part of speech, but do not replace it unless clarity truly requires it.

GOAL
- Produce a poem that "says the same thing" as the input with similar length and intensity.
- Favor coherence first, color second, form third.
- The poem should feel more open and breathable, not explained or flattened.

RULES
- Output ONLY the poem text. No title. No commentary. No analysis.
- 8-24 lines total.
- Do NOT introduce new themes, symbols, or ideas.
- Prefer straightforward sentence construction over compressed or elliptical phrasing.
- Keep imaginative nouns, verbs, and adjectives even if they are unusual or surreal.
- You may normalize arbitrary capitalization, re-order phrases for readability, and split or merge lines to follow punctuation.
- You may NOT paraphrase into prose, explain meaning, or remove strangeness solely to sound "safe" or generic.
- Avoid meta language (e.g., "this poem," "it suggests," "the speaker").

FORMAT
- Plain text poem only.
- Line breaks follow sentence structure and punctuation; no decorative or purely rhythmic breaks.
- Output length should roughly match input length.

INPUT POEM:
<<<
{poem}
>>>
"""

_IMAGE_POEM_TEMPLATE = """
Create a high-quality image from the poem provided below. Leave room at the bottom for me to annotate the image later.

CRUCIAL INSTRUCTION: leave the lower 1/5 of the image blank.  Only use the top 4/5 of the image!

CORE REQUIREMENTS:

1. IMPORTANT: Leave space near the BOTTOM 1/5 of the image for the poem text to be added later.  Do not include ANY text in this image!

2. Composition:
   - Strong focus on key subjects
   - Secondary symbolic elements that support the poem without overwhelming it
   - Intentional negative space and balanced framing


STYLE:
{style}

POEM:
{poem}
"""


def seed_poem(
    rng: random.Random | None = None, templates: tuple[str, ...] = SEED_TEMPLATES
) -> str:
    """Fill one random template from ``WORD_BANK``.

    Tokens that are not categories (``is``, ``and``) are copied as-is.
    ``comma`` ends a line with ``,`` and ``period`` ends a sentence.
    """
    rng = rng or random.Random()
    poem = ""
    for token in rng.choice(templates).split():
        if token == "comma":
            poem = poem.rstrip() + ",\n"
        elif token == "period":
            poem = poem.rstrip() + ".  "
        else:
            words = WORD_BANK.get(token)
            poem += (rng.choice(words) if words else token) + " "
    return poem.strip()


def rewrite_poem_prompt(poem: str) -> str:
    return _REWRITE_POEM_TEMPLATE.format(poem=poem)


def image_poem_prompt(poem: str, style: str | None = None) -> str:
    """Image prompt that keeps the bottom fifth empty for the caption band."""
    return _IMAGE_POEM_TEMPLATE.format(poem=poem, style=(style or DEFAULT_POEM_STYLE).strip())


def styled_prompt(poem: str, style: str | None) -> str:
    """The poem with a trailing style section, or the poem alone."""
    if not style or not style.strip():
        return poem
    return f"{poem}\n\nstyle\n-----\n{style.strip()}"
