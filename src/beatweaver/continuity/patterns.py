"""Pattern tables for keyword and regex heuristics.

Every free-text heuristic in the continuity package reads from a
``PatternTable``: an ordered list of ``PatternRule(pattern, classification)``.
When several rules match the same text the first rule wins. Replacing a
table swaps the text classification without touching the validators.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class PatternRule:
    """A compiled pattern and the label it assigns."""

    pattern: re.Pattern[str]
    classification: str

    def search(self, text: str) -> re.Match[str] | None:
        return self.pattern.search(text)


@dataclass(frozen=True)
class PatternTable:
    """Ordered rules; the first matching rule decides the classification."""

    rules: tuple[PatternRule, ...]

    def classify(self, text: str) -> str | None:
        """Return the classification of the first matching rule, if any."""
        for rule in self.rules:
            if rule.search(text):
                return rule.classification
        return None

    def matches(self, text: str) -> bool:
        return self.classify(text) is not None

    def __add__(self, other: PatternTable) -> PatternTable:
        return PatternTable(self.rules + other.rules)

    @classmethod
    def from_keywords(cls, categories: Mapping[str, Iterable[str]]) -> PatternTable:
        """Build a table of whole-word keyword rules, one per category.

        Category order is preserved, so earlier categories take precedence.
        """
        return cls(
            tuple(
                PatternRule(keyword_pattern(words), classification)
                for classification, words in categories.items()
            )
        )

    @classmethod
    def from_patterns(cls, classification: str, *patterns: str) -> PatternTable:
        """Build a single-classification table from raw regex sources."""
        return cls(
            tuple(PatternRule(re.compile(p, re.IGNORECASE), classification) for p in patterns)
        )


def keyword_pattern(words: Iterable[str]) -> re.Pattern[str]:
    """Case-insensitive whole-word alternation, longest alternatives first."""
    ordered = sorted({w.strip() for w in words if w.strip()}, key=len, reverse=True)
    alternation = "|".join(re.escape(w) for w in ordered)
    return re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)


def name_pattern(name: str) -> re.Pattern[str]:
    """Whole-word, case-insensitive pattern for an entity name."""
    return re.compile(rf"(?<![\w]){re.escape(name.strip())}(?![\w])", re.IGNORECASE)


def mentions(text: str, name: str) -> bool:
    """True if ``name`` appears as a whole word (or phrase) in ``text``."""
    return bool(name.strip()) and bool(name_pattern(name).search(text))


# ---------------------------------------------------------------------------
# Character introduction
# ---------------------------------------------------------------------------

INTRODUCTION_SIGNALS = PatternTable.from_patterns(
    "introduction",
    r"\bintroduc\w*",
    r"\bfirst (?:meet|meets|met|meeting)\b",
    r"\bfirst (?:see|sees|saw|seeing|sight of)\b",
    r"\bencounter\w*",
    r"\barriv(?:e|es|ed|ing)\b",
    r"\benter(?:s|ed|ing)?\b",
    r"\bappears? for the first time\b",
)

# Templates naming a character as they are introduced; {name} is substituted.
NAMED_INTRODUCTION_TEMPLATES: tuple[str, ...] = (
    r"\b(?:named|called|known as|introduces? (?:himself|herself|themselves) as)\s+{name}\b",
    r"(?<![\w]){name},\s+(?:a|an|the)\s+\w+",
    r"\b(?:meets?|this is|that is)\s+{name}\b",
)

# ---------------------------------------------------------------------------
# Scene transitions
# ---------------------------------------------------------------------------

TRANSITION_MARKERS = PatternTable.from_patterns(
    "explicit_transition",
    r"\bmeanwhile\b",
    r"\belsewhere\b",
    r"\bthe (?:next|following) (?:day|morning|evening|night|week)\b",
    r"\b(?:hours|days|weeks|months|years) (?:later|earlier|pass)\b",
    r"\blater that (?:day|night|evening|morning)\b",
    r"\bin a flashback\b",
    r"\bat the same time\b",
    r"\bback at\b",
    r"\bacross (?:town|the city|the kingdom)\b",
    r"\bcut to\b",
)

TRAVEL_VOCABULARY = PatternTable.from_patterns(
    "travel",
    r"\btravel\w*",
    r"\bjourney\w*",
    r"\b(?:ride|rides|riding|rode)\b",
    r"\b(?:walk|walks|walked|walking|run|runs|ran|hurr(?:y|ies|ied))"
    r" (?:to|into|toward|towards|back)\b",
    r"\bhead(?:s|ed|ing)? (?:to|for|toward|towards|into|back)\b",
    r"\barriv\w*",
    r"\bdepart\w*",
    r"\b(?:leave|leaves|leaving|left)\b",
    r"\breturn\w*",
    r"\breach(?:es|ed)?\b",
    r"\bsets? (?:off|out)\b",
    r"\b(?:flee|flees|fled|fleeing|escape|escapes|escaped)\b",
    r"\b(?:sail|sails|sailed|march|marches|marched|drive|drives|drove|fly|flies|flew)\b",
    r"\b(?:make|makes|made) (?:their|his|her|its) way\b",
    r"\benter(?:s|ed|ing)?\b",
    r"\bcross(?:es|ed|ing)?\b",
)

CAST_TRANSFER_VOCABULARY = PatternTable.from_patterns(
    "cast_transfer",
    r"\b(?:leave|leaves|leaving|left)\b",
    r"\bdepart\w*",
    r"\bexit\w*",
    r"\benter(?:s|ed|ing)?\b",
    r"\barriv\w*",
    r"\bjoin(?:s|ed|ing)?\b",
    r"\breplac\w*",
    r"\btakes? over\b",
    r"\balone\b",
    r"\bgone\b",
    r"\breturn\w*",
    r"\b(?:walk|walks|walked|burst|bursts|step|steps|stepped) in\b",
)

ARRIVAL_VOCABULARY = PatternTable.from_patterns(
    "arrival",
    r"\barriv\w*",
    r"\benter(?:s|ed|ing)?\b",
    r"\bjoin(?:s|ed|ing)?\b",
    r"\bappear\w*",
    r"\bapproach\w*",
    r"\bemerg\w*",
    r"\b(?:walk|walks|walked|burst|bursts|step|steps|stepped|come|comes|came) in\b",
    r"\bshows? up\b",
)

ABRUPT_SHIFT_VOCABULARY = PatternTable.from_patterns(
    "abrupt_shift",
    r"\bsudden(?:ly)?\b",
    r"\bwithout warning\b",
    r"\babrupt(?:ly)?\b",
    r"\ball at once\b",
    r"\bout of nowhere\b",
    r"\bin an instant\b",
    r"\bshatter(?:s|ed)? the\b",
    r"\binterrupt\w*",
    r"\bbut then\b",
)

MOOD_CATEGORIES = PatternTable.from_keywords(
    {
        "action": [
            "action", "violent", "violence", "frantic", "chaotic", "combat", "battle",
            "fight", "fighting", "explosive", "chase", "adrenaline", "fierce", "brutal",
            "savage", "frenzied", "furious",
        ],
        "tense": [
            "tense", "tension", "suspense", "suspenseful", "anxious", "uneasy", "nervous",
            "ominous", "foreboding", "dread", "apprehensive", "paranoid", "intense",
            "menacing", "eerie", "unsettling", "urgent",
        ],
        "negative": [
            "sad", "sadness", "grief", "grieving", "sorrow", "sorrowful", "despair",
            "angry", "anger", "dark", "bleak", "tragic", "melancholy", "melancholic",
            "mournful", "hopeless", "bitter", "fearful", "terrified", "horror", "grim",
            "somber", "sombre", "depressing", "desperate", "devastated", "miserable",
        ],
        "positive": [
            "happy", "happiness", "joy", "joyful", "joyous", "cheerful", "hopeful", "warm",
            "triumphant", "elated", "playful", "romantic", "loving", "excited", "uplifting",
            "lighthearted", "light-hearted", "celebratory", "relieved", "content", "jubilant",
            "festive", "delighted",
        ],
        "calm": [
            "calm", "peaceful", "serene", "quiet", "tranquil", "reflective",
            "contemplative", "gentle", "relaxed", "still", "meditative", "soothing",
            "restful",
        ],
    }
)

# Unordered mood pairs that read as jarring without a bridge.
JARRING_MOOD_PAIRS: frozenset[frozenset[str]] = frozenset(
    {
        frozenset({"positive", "negative"}),
        frozenset({"positive", "action"}),
        frozenset({"calm", "action"}),
    }
)

# ---------------------------------------------------------------------------
# Cross-chapter continuity
# ---------------------------------------------------------------------------

RESURRECTION_EXEMPTIONS = PatternTable.from_patterns(
    "non_literal_presence",
    r"\bflashback\w*",
    r"\bmemor(?:y|ies)\b",
    r"\bremember\w*",
    r"\brecall\w*",
    r"\bghost\w*",
    r"\bspirit\b",
    r"\bapparition\w*",
    r"\bhaunt\w*",
    r"\bvision\w*",
    r"\bdream\w*",
    r"\bhallucinat\w*",
    r"\bresurrect\w*",
    r"\breviv\w*",
    r"\bbrought back\b",
    r"\b(?:grave|tomb|funeral|corpse|body of)\b",
)

ITEM_ABSENCE_VOCABULARY = PatternTable.from_patterns(
    "item_absence",
    r"\blost\b",
    r"\bloss\b",
    r"\bdestroy\w*",
    r"\bdestruction\b",
    r"\bmissing\b",
    r"\bsearch\w*",
    r"\brecover\w*",
    r"\b(?:seek|seeks|sought|seeking)\b",
    r"\blook(?:s|ed|ing)? for\b",
    r"\bremains of\b",
    r"\bwithout (?:the|his|her|their)\b",
)

# Templates for an item being actively used; {item} is substituted.
ITEM_USE_TEMPLATES: tuple[str, ...] = (
    r"\b(?:use|uses|using|used|wield|wields|wielding|wielded|draw|draws|drawing|drew|"
    r"hold|holds|holding|held|swing|swings|swinging|swung|raise|raises|raising|raised|"
    r"brandish\w*|grip|grips|gripping|gripped|grab|grabs|grabbing|grabbed|lift|lifts|"
    r"lifting|lifted|point|points|pointing|pointed|unlock|unlocks|unlocked|activate\w*|"
    r"fire|fires|fired|throw|throws|threw|carry|carries|carrying|carried|"
    r"pulls? out|pulled out|takes? out|took out)\s+(?:\w+\s+){{0,3}}?{item}\b",
    r"\bwith (?:the |a |an |his |her |their |its )?{item}\b",
    r"(?<![\w]){item}\s+(?:glows|gleams|flashes|cuts|strikes|opens|unlocks|fires|burns)\b",
)

TELEPORT_BRIDGE_VOCABULARY = TRAVEL_VOCABULARY + TRANSITION_MARKERS + PatternTable.from_patterns(
    "time_skip",
    r"\blater\b",
    r"\bafter (?:a|the|several|many) (?:hours?|days?|weeks?|months?|journey|ride|night)\b",
    r"\bby (?:dawn|nightfall|morning|evening)\b",
)

ITEM_TRANSFER_VOCABULARY = PatternTable.from_patterns(
    "item_transfer",
    r"\bborrow\w*",
    r"\blend(?:s|ing)?\b",
    r"\blent\b",
    r"\b(?:give|gives|gave|given|giving)\b",
    r"\b(?:steal|steals|stole|stolen|stealing)\b",
    r"\bleft behind\b",
    r"\bhand(?:s|ed)? (?:over|it|the)\b",
    r"\b(?:entrust\w*|loan\w*|inherit\w*)\b",
    r"\b(?:takes|took|taken) (?:\w+ )?from\b",
)

# ---------------------------------------------------------------------------
# Chapter state extraction
# ---------------------------------------------------------------------------

# Ordered (classification, template) pairs; {name} is substituted with a
# roster name. Death rules apply to characters, the rest to items.
CHARACTER_STATE_TEMPLATES: tuple[tuple[str, str], ...] = (
    (
        "death",
        r"(?<![\w]){name}\s+(?:dies|died|is killed|was killed|is slain|was slain|perishes|"
        r"perished|is murdered|was murdered|is executed|was executed|falls dead|fell dead|"
        r"breathes (?:his|her|their) last|succumbs|succumbed)\b",
    ),
    (
        "death",
        r"\b(?:kills|killed|slays|slew|slain|murders|murdered|executes|executed|"
        r"assassinates|assassinated)\s+{name}\b",
    ),
    ("death", r"\b(?:death|body|corpse) of\s+{name}\b"),
    ("death", r"(?<![\w]){name}(?:'s|’s)\s+(?:death|corpse|lifeless body)\b"),
)

ITEM_STATE_TEMPLATES: tuple[tuple[str, str], ...] = (
    (
        "destroyed",
        r"(?<![\w]){name}\s+(?:is|was|gets|got)\s+(?:destroyed|shattered|broken|smashed|"
        r"burned|burnt|melted|obliterated|crushed)\b",
    ),
    ("destroyed", r"(?<![\w]){name}\s+(?:shatters|shattered|crumbles|crumbled|breaks apart)\b"),
    (
        "destroyed",
        r"\b(?:destroys|destroyed|shatters|shattered|smashes|smashed|breaks|broke|melts|"
        r"melted|burns|burned)\s+(?:the |a |an |his |her |their )?{name}\b",
    ),
    (
        "recovered",
        r"\b(?:recovers|recovered|retrieves|retrieved|finds|found|reclaims|reclaimed|"
        r"regains|regained)\s+(?:the |a |an |his |her |their )?"
        r"(?:(?:lost|missing|stolen)\s+)?{name}\b",
    ),
    (
        "lost",
        r"(?<![\w]){name}\s+(?:is|was)\s+(?:lost|stolen|taken|swept away|left behind)\b",
    ),
    ("lost", r"(?<![\w]){name}\s+(?:goes|went) missing\b"),
    (
        "lost",
        r"(?<!\bthe )(?<!\ba )(?<!\ban )(?<!\bhis )(?<!\bher )(?<!\btheir )"
        r"\b(?:loses|lost|drops|dropped)\s+(?:the |a |an |his |her |their )?{name}\b",
    ),
)

# Acquisition template with both an {owner} and an {item} placeholder.
ACQUISITION_TEMPLATE = (
    r"(?<![\w]){owner}\s+(?:takes|took|picks up|picked up|grabs|grabbed|pockets|pocketed|"
    r"receives|received|claims|claimed|retrieves|retrieved|finds|found|accepts|accepted)"
    r"\s+(?:the |a |an |back the )?(?:(?:lost|missing|stolen)\s+)?{item}\b"
)


def compile_template(template: str, **names: str) -> re.Pattern[str]:
    """Substitute escaped names into a template and compile it."""
    escaped = {key: re.escape(value.strip()) for key, value in names.items()}
    return re.compile(template.format(**escaped), re.IGNORECASE)
