"""Extract candidate appointment date/time pairs from the bookings page.

The page is rendered by a JS app whose markup changes without notice, so
extraction works on text patterns rather than exact selectors. Three
strategies are tried in order and the first one that finds anything wins:

  CompactStatusStrategy  "Thu | Jan 08, 26  Scheduled  4:00pm" (current Appointy layout)
  CardStrategy           one booking per card / row / list item
  DocumentScanStrategy   every date in the page, time looked up nearby

Results are never merged across strategies.
"""

import re
from abc import ABC, abstractmethod

from bs4 import BeautifulSoup, Tag

from src.appointy_sync.logging import get_logger
from src.appointy_sync.models import RawMatch, TimeMatch

log = get_logger(__name__)

_WEEKDAY = r"(?:mon|tue|wed|thu|fri|sat|sun)[a-z]*"
_MONTH = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
_DAY = r"\d{1,2}(?:st|nd|rd|th)?"

# Date families in priority order
DATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # "Monday, January 15, 2026"
    re.compile(rf"\b{_WEEKDAY},?\s+{_MONTH}\s+{_DAY},?\s+\d{{4}}\b", re.IGNORECASE),
    # "January 15, 2026"
    re.compile(rf"\b{_MONTH}\s+{_DAY},?\s+\d{{4}}\b", re.IGNORECASE),
    # "1/15/2026", "1-15-26"
    re.compile(r"\b\d{1,2}[/-]\d{1,2}[/-](?:\d{4}|\d{2})\b"),
)

# All families as one alternation; at any position the earlier family wins,
# so "Monday, January 15, 2026" is matched once, not also as "January 15, 2026"
ANY_DATE = re.compile(
    "|".join(f"(?:{p.pattern})" for p in DATE_PATTERNS), re.IGNORECASE
)

# "4:00 PM - 5:00 PM", "9:30am", "10:00 to 11:15am"
TIME_PATTERN = re.compile(
    r"(?<![\d:])(\d{1,2}):(\d{2})(?:\s*(am|pm)\b)?"
    r"(?:\s*(?:-|–|—|to)\s*(\d{1,2}):(\d{2})(?:\s*(am|pm)\b)?)?",
    re.IGNORECASE,
)

STATUS_KEYWORDS = ("Scheduled", "Confirmed")

# "Thu | Jan 08, 26" then status then "4:00pm"
COMPACT_PATTERN = re.compile(
    r"\b([a-z]{3})\s*\|\s*([a-z]{3})\s+(\d{1,2}),\s*(\d{2})\s*"
    rf"(?:{'|'.join(STATUS_KEYWORDS)})\s*"
    r"(\d{1,2}):(\d{2})\s*(am|pm)",
    re.IGNORECASE,
)

TITLE_PHRASE = re.compile(
    r"\b(?:session|class|lesson|tutoring)\s*:\s*([^\n|]+)", re.IGNORECASE
)
TITLE_MAX_LENGTH = 50

CONTEXT_BEFORE = 100
CONTEXT_AFTER = 200

_CARD_CLASS = re.compile(r"booking|appointment|event|card|session|list-item", re.IGNORECASE)
_CARD_TAGS = frozenset({"article", "li", "tr"})
_CARD_ROLES = frozenset({"row", "listitem", "article"})
_HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})
_HEADING_CLASS = re.compile(r"title|service", re.IGNORECASE)


def _normalize_text(raw: str) -> str:
    """Collapse runs of spaces inside lines and drop blank lines."""
    lines = (" ".join(line.split()) for line in raw.splitlines())
    return "\n".join(line for line in lines if line)


def _element_text(element: Tag) -> str:
    return _normalize_text(element.get_text("\n"))


class PageDocument:
    """A fetched page parsed once and shared by all strategies.

    Plain text (no markup) is accepted too; it simply has no cards.
    """

    def __init__(self, page: str) -> None:
        self.raw = page or ""
        if "<" in self.raw:
            self.soup: BeautifulSoup | None = BeautifulSoup(self.raw, "html.parser")
            for hidden in self.soup(["script", "style", "noscript", "template"]):
                hidden.decompose()
            self.text = _element_text(self.soup)
        else:
            self.soup = None
            self.text = _normalize_text(self.raw)


def find_date(text: str) -> str | None:
    """Return the first date in text, trying each family in priority order."""
    for pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def time_from_match(match: re.Match[str]) -> TimeMatch:
    """Build a TimeMatch from a TIME_PATTERN match."""
    return TimeMatch(
        start_hour=int(match.group(1)),
        start_minute=int(match.group(2)),
        start_meridiem=match.group(3),
        end_hour=int(match.group(4)) if match.group(4) else None,
        end_minute=int(match.group(5)) if match.group(5) else None,
        end_meridiem=match.group(6),
    )


def infer_title(context: str) -> str | None:
    """Find a "Session: ..." style label in the context text."""
    match = TITLE_PHRASE.search(context)
    if not match:
        return None
    title = match.group(1).strip()[:TITLE_MAX_LENGTH].strip()
    return title or None


class ExtractionStrategy(ABC):
    """One way of locating bookings in a page."""

    name: str = "strategy"

    @abstractmethod
    def attempt(self, document: PageDocument) -> list[RawMatch]:
        """Return every booking this strategy finds, in page order."""


class CompactStatusStrategy(ExtractionStrategy):
    """The current Appointy "my bookings" layout.

    Each booking renders as ``Thu | Jan 08, 26`` followed by its status and a
    start time. No end time is shown; sessions default to one hour.
    """

    name = "compact"

    def attempt(self, document: PageDocument) -> list[RawMatch]:
        results: list[RawMatch] = []
        for match in COMPACT_PATTERN.finditer(document.text):
            _weekday, month, day, year, hour, minute, meridiem = match.groups()
            results.append(
                RawMatch(
                    date_text=f"{month} {day} 20{year}",
                    time=TimeMatch(
                        start_hour=int(hour),
                        start_minute=int(minute),
                        start_meridiem=meridiem,
                    ),
                    context=match.group(0),
                )
            )
        return results


class CardStrategy(ExtractionStrategy):
    """Scan repeating blocks that each look like one booking.

    Blocks are recognised by role (card, row, list item) rather than exact
    markup. A block qualifies when its text holds exactly one date and a
    time; when qualifying blocks nest, the innermost one is used so a list
    wrapper around a single booking is not read twice.
    """

    name = "card"

    def attempt(self, document: PageDocument) -> list[RawMatch]:
        if document.soup is None:
            return []

        candidates: list[tuple[Tag, str]] = []
        for block in document.soup.find_all(_is_card):
            text = _element_text(block)
            if len(ANY_DATE.findall(text)) != 1 or not TIME_PATTERN.search(text):
                continue
            candidates.append((block, text))

        # Drop any candidate that contains another candidate
        containers: set[int] = set()
        candidate_ids = {id(block) for block, _ in candidates}
        for block, _ in candidates:
            for parent in block.parents:
                if id(parent) in candidate_ids:
                    containers.add(id(parent))

        results: list[RawMatch] = []
        for block, text in candidates:
            if id(block) in containers:
                continue
            date_text = find_date(text)
            time_match = TIME_PATTERN.search(text)
            if date_text is None or time_match is None:
                continue
            results.append(
                RawMatch(
                    date_text=date_text,
                    time=time_from_match(time_match),
                    context=text,
                    title=_heading_title(block) or infer_title(text),
                )
            )
        return results


class DocumentScanStrategy(ExtractionStrategy):
    """Look at every date in the page and search nearby for its time.

    The time is taken from up to 200 characters after the date, else the
    closest one in the 100 characters before it. Both windows stop at the
    neighbouring dates. A title label is only taken from after the date; the
    text before it belongs to the previous booking.
    """

    name = "document"

    def attempt(self, document: PageDocument) -> list[RawMatch]:
        text = document.text
        dates = list(ANY_DATE.finditer(text))
        results: list[RawMatch] = []

        for index, date_match in enumerate(dates):
            previous_end = dates[index - 1].end() if index > 0 else 0
            next_start = dates[index + 1].start() if index + 1 < len(dates) else len(text)

            after = text[date_match.end() : min(date_match.end() + CONTEXT_AFTER, next_start)]
            before = text[max(date_match.start() - CONTEXT_BEFORE, previous_end) : date_match.start()]

            time_match = TIME_PATTERN.search(after)
            if time_match is None:
                earlier = list(TIME_PATTERN.finditer(before))
                time_match = earlier[-1] if earlier else None
            if time_match is None:
                log.debug("date_without_time", date=date_match.group(0))
                continue

            results.append(
                RawMatch(
                    date_text=date_match.group(0),
                    time=time_from_match(time_match),
                    context=f"{before}{date_match.group(0)}{after}",
                    title=infer_title(after),
                )
            )
        return results


DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    CompactStatusStrategy(),
    CardStrategy(),
    DocumentScanStrategy(),
)


def extract_matches(
    page: str,
    strategies: tuple[ExtractionStrategy, ...] = DEFAULT_STRATEGIES,
) -> list[RawMatch]:
    """Find booking candidates in a page (HTML or plain text).

    Args:
        page: Raw HTML or text of the bookings page.
        strategies: Strategies in priority order.

    Returns:
        Matches from the first strategy that found any, in page order.
        Empty when nothing matched.
    """
    if not page or not page.strip():
        return []

    document = PageDocument(page)
    for strategy in strategies:
        matches = strategy.attempt(document)
        if matches:
            log.info("matches_extracted", strategy=strategy.name, count=len(matches))
            return matches

    log.info("matches_extracted", strategy=None, count=0)
    return []


def _is_card(tag: Tag) -> bool:
    if tag.name in _CARD_TAGS:
        return True
    if tag.get("role") in _CARD_ROLES:
        return True
    return any(_CARD_CLASS.search(name) for name in tag.get("class") or [])


def _is_heading(tag: Tag) -> bool:
    if tag.name in _HEADING_TAGS:
        return True
    return any(_HEADING_CLASS.search(name) for name in tag.get("class") or [])


def _heading_title(block: Tag) -> str | None:
    """Nearest heading for a booking block.

    Searches the block, then its ancestors for as long as they are themselves
    card-like and hold a single booking, so a card's heading is found even
    when the matched block is the card body. Page headings outside the card
    are never used.
    """
    node: Tag | None = block
    while node is not None:
        heading = node.find(_is_heading)
        if heading is not None:
            title = heading.get_text(" ", strip=True)[:TITLE_MAX_LENGTH].strip()
            if title:
                return title
        node = node.parent
        if node is None or node.name == "[document]" or not _is_card(node):
            break
        if len(ANY_DATE.findall(_element_text(node))) != 1:
            break
    return None
