"""Registry of the external ticketing platforms the pipeline ingests from."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from eventcatalog.core.exceptions import UnknownPlatformError


class PlatformId(str, Enum):
    """Stable short keys for every supported platform."""

    TICKETSASA = "ticketsasa"
    MTICKETS = "mtickets"
    TICKETYETU = "ticketyetu"
    HUSTLE = "hustle"
    MADFUN = "madfun"


class ParsingStrategy(str, Enum):
    """How events are pulled from a platform's listing page."""

    EXTRACT = "extract"  # Structured extraction job
    MARKDOWN = "markdown"  # Raw document scrape + text-pattern parser


@dataclass(frozen=True)
class PlatformConfig:
    """Static configuration for one external source."""

    id: PlatformId
    name: str
    base_url: str
    events_path: str
    extraction_prompt: str
    color: str = "#607D8B"  # UI badge
    parsing_strategy: ParsingStrategy = ParsingStrategy.EXTRACT

    @property
    def events_url(self) -> str:
        return f"{self.base_url}{self.events_path}"


# JSON schema handed to the extraction service with every job
EVENT_EXTRACTION_SCHEMA = {
    "type": "object",
    "properties": {
        "events": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "imageUrl": {"type": "string"},
                    "date": {"type": "string"},
                    "time": {"type": "string"},
                    "venue": {"type": "string"},
                    "organizer": {"type": "string"},
                    "price": {"type": "string"},
                    "ticketUrl": {"type": "string"},
                },
                "required": ["title"],
            },
        }
    },
}

EVENTS_ARRAY_INSTRUCTION = (
    "IMPORTANT: Return a JSON object with an 'events' array containing all the events you find."
)


PLATFORM_CONFIGS: Dict[PlatformId, PlatformConfig] = {
    PlatformId.TICKETSASA: PlatformConfig(
        id=PlatformId.TICKETSASA,
        name="TicketSasa",
        base_url="https://ticketsasa.com",
        events_path="/events",
        color="#FF5722",
        parsing_strategy=ParsingStrategy.MARKDOWN,
        extraction_prompt=(
            "Extract ALL events from the grid. Each event card has this structure:\n"
            '- title: Found in <a class="event-name">. Use the text or title attribute. (REQUIRED)\n'
            '- ticketUrl: Found in the href of <a class="event-name"> or <a class="fill">. '
            "(FULL URL starting with https://ticketsasa.com)\n"
            '- imageUrl: Found in <img> inside <a class="fill">.\n'
            '- date: Found as text immediately ABOVE the event name link. (e.g., "SUN 21 DEC 2025")\n'
            '- venue: Found as text immediately BELOW the event name link. (e.g., "Skyline Rooftop, Nairobi")\n'
            '- price: Found at the bottom of the card, often starts with "Starting KES" or says "FREE".\n'
            "- description: Usually found on the linked event detail page, but extract any summary visible here.\n\n"
            "Return as many events as possible. Each must have a title and ticketUrl."
        ),
    ),
    PlatformId.MTICKETS: PlatformConfig(
        id=PlatformId.MTICKETS,
        name="MTickets",
        base_url="https://www.mtickets.com",
        events_path="/",
        color="#2196F3",
        extraction_prompt=(
            "Extract all upcoming events from this page. For each event, get:\n"
            "- title: Event name/title\n"
            "- description: Brief description\n"
            "- imageUrl: Event poster/image URL (full URL)\n"
            "- date: Event date\n"
            "- time: Start time\n"
            "- venue: Venue name\n"
            "- organizer: Organizer if shown\n"
            "- price: Ticket price\n"
            "- ticketUrl: Link to event details or tickets"
        ),
    ),
    PlatformId.TICKETYETU: PlatformConfig(
        id=PlatformId.TICKETYETU,
        name="TicketYetu",
        base_url="https://ticketyetu.com",
        events_path="/events",
        color="#4CAF50",
        extraction_prompt=(
            "Extract all events from this events listing. For each event:\n"
            "- title: Event title\n"
            "- description: Description text\n"
            "- imageUrl: Event image (absolute URL)\n"
            "- date: Date and time information\n"
            "- time: Specific time if separate from date\n"
            "- venue: Venue or location\n"
            "- organizer: Event host/organizer\n"
            '- price: Starting price (e.g., "Starts at 1,000 KSh")\n'
            "- ticketUrl: Registration/ticket link"
        ),
    ),
    PlatformId.HUSTLE: PlatformConfig(
        id=PlatformId.HUSTLE,
        name="Hustle",
        base_url="https://hustle.events",
        events_path="/",
        color="#9C27B0",
        extraction_prompt=(
            "Extract all events displayed on this page. For each event:\n"
            "- title: Event name\n"
            "- description: Event description if shown\n"
            "- imageUrl: Event image/flyer URL (complete URL)\n"
            "- date: Event date\n"
            "- time: Event time\n"
            "- venue: Location/venue\n"
            "- organizer: Event organizer\n"
            "- price: Ticket price or entry fee\n"
            "- ticketUrl: Link to event page or tickets"
        ),
    ),
    PlatformId.MADFUN: PlatformConfig(
        id=PlatformId.MADFUN,
        name="Madfun",
        base_url="https://gigs.madfun.com",
        events_path="/events",
        color="#00BCD4",
        extraction_prompt=(
            "Extract ALL events/gigs from this page. For each event:\n"
            "- title: Gig/event name (REQUIRED)\n"
            "- description: Event details or description\n"
            "- imageUrl: Event poster/image URL (absolute URL)\n"
            "- date: Date of the event\n"
            "- time: Start time\n"
            "- venue: Venue name and location\n"
            "- organizer: Event organizer\n"
            '- price: Ticket prices (e.g., "Regular: KES 1000, VIP: KES 2000")\n'
            "- ticketUrl: Full URL to event page (must include madfun.com)\n\n"
            "Find all events. Every event needs a title."
        ),
    ),
}


def valid_platform_ids() -> List[str]:
    return [p.value for p in PLATFORM_CONFIGS]


def get_platform(platform_id: str) -> Optional[PlatformConfig]:
    """Look up a platform by its id, or None when unknown."""
    try:
        return PLATFORM_CONFIGS[PlatformId(platform_id)]
    except ValueError:
        return None


def resolve_platforms(platform_ids: Optional[Iterable[str]] = None) -> List[PlatformConfig]:
    """Resolve caller-selected platform ids into configs.

    Unknown ids are dropped and duplicates collapsed. With no selection,
    every registered platform is returned in registry order.

    Raises:
        UnknownPlatformError: If a selection was given but none of it is valid
    """
    if platform_ids is None:
        return list(PLATFORM_CONFIGS.values())

    requested = list(platform_ids)
    resolved: List[PlatformConfig] = []
    for platform_id in requested:
        platform = get_platform(platform_id)
        if platform and platform not in resolved:
            resolved.append(platform)

    if not resolved:
        raise UnknownPlatformError(requested, valid_platform_ids())
    return resolved


def validate_registry() -> None:
    """Check the registry covers every PlatformId with a usable config.

    Called once at start-up so a bad edit fails the deploy instead of a run.

    Raises:
        ValueError: If a platform id has no config or a malformed one
    """
    for platform_id in PlatformId:
        platform = PLATFORM_CONFIGS.get(platform_id)
        if platform is None:
            raise ValueError(f"No config registered for platform: {platform_id.value}")
        if platform.id is not platform_id:
            raise ValueError(f"Config for {platform_id.value} is keyed as {platform.id.value}")
        if not platform.base_url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid base_url for {platform_id.value}: {platform.base_url}")
        if not platform.events_path.startswith("/"):
            raise ValueError(f"events_path must start with '/' for {platform_id.value}")
