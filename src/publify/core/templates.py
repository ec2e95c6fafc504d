"""System event templates and the dynamic date rules that place them."""

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta

from .events import DEFAULT_TAGS, EventPriority, Reminder, ReminderChannel, Tag


@dataclass(frozen=True)
class NthWeekdayOfMonth:
    """The nth `weekday` of `month`; n=-1 means the last one.

    `weekday` uses the `calendar` module constants (MONDAY=0 .. SUNDAY=6).
    """

    n: int
    weekday: int
    month: int


@dataclass(frozen=True)
class FixedOffsetFromDate:
    """A fixed number of days after another template's date."""

    base_key: str
    days: int


DynamicRule = NthWeekdayOfMonth | FixedOffsetFromDate


@dataclass(frozen=True)
class SystemEventTemplate:
    """A recurring yearly date on the editorial calendar."""

    key: str
    name: str
    description: str
    month: int
    day: int | None = None
    dynamic_rule: DynamicRule | None = None
    category: str = "commercial"
    enabled: bool = True
    priority: EventPriority = EventPriority.MEDIUM
    default_tags: tuple[Tag, ...] = ()
    default_reminders: tuple[Reminder, ...] = ()
    campaign_type: str | None = None
    campaign_window_days: int | None = None
    recommended_niches: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if (self.day is None) == (self.dynamic_rule is None):
            raise ValueError(f"Template {self.key!r} needs exactly one of day or dynamic_rule")


def nth_weekday_of_month(year: int, month: int, weekday: int, n: int) -> date | None:
    """
    Resolve the nth weekday of a month.

    Pure function - no I/O. Returns None when the month has no such
    occurrence (e.g. a 5th Monday in a four-Monday month).
    """
    days_in_month = calendar.monthrange(year, month)[1]
    matches = [
        date(year, month, d)
        for d in range(1, days_in_month + 1)
        if date(year, month, d).weekday() == weekday
    ]
    if n == -1:
        return matches[-1]
    if 1 <= n <= len(matches):
        return matches[n - 1]
    return None


def resolve_template_date(
    template: SystemEventTemplate,
    year: int,
    catalog: dict[str, SystemEventTemplate],
    _seen: frozenset[str] = frozenset(),
) -> date | None:
    """
    Resolve the calendar date of a template for a year.

    Offset rules look their base up in `catalog` whether or not the base is
    enabled. Unknown bases, reference cycles and impossible fixed dates
    (Feb 29 in a common year) resolve to None.
    """
    if template.key in _seen:
        return None

    if template.day is not None:
        try:
            return date(year, template.month, template.day)
        except ValueError:
            return None

    rule = template.dynamic_rule
    match rule:
        case NthWeekdayOfMonth(n=n, weekday=weekday, month=month):
            return nth_weekday_of_month(year, month, weekday, n)
        case FixedOffsetFromDate(base_key=base_key, days=days):
            base = catalog.get(base_key)
            if base is None:
                return None
            base_date = resolve_template_date(base, year, catalog, _seen | {template.key})
            if base_date is None:
                return None
            return base_date + timedelta(days=days)
    return None


_PROMO, _MARKETING, _CONTENT, _LAUNCH = DEFAULT_TAGS[1], DEFAULT_TAGS[2], DEFAULT_TAGS[3], DEFAULT_TAGS[0]

_WEEK_BEFORE = Reminder("r1", 10080, ReminderChannel.IN_APP, True)
_TWO_DAYS_BEFORE = Reminder("r2", 2880, ReminderChannel.IN_APP, True)


SYSTEM_EVENT_TEMPLATES: tuple[SystemEventTemplate, ...] = (
    # Q1
    SystemEventTemplate(
        key="new_year",
        name="New Year's Day",
        description="Start of the new year",
        month=1,
        day=1,
        category="holidays",
        default_tags=(_PROMO,),
        default_reminders=(_WEEK_BEFORE,),
        campaign_type="seasonal",
        campaign_window_days=14,
        recommended_niches=("planners", "self-help", "journals"),
    ),
    SystemEventTemplate(
        key="valentines_day",
        name="Valentine's Day",
        description="Romance promotions window",
        month=2,
        day=14,
        priority=EventPriority.HIGH,
        default_tags=(_PROMO, _MARKETING),
        default_reminders=(_WEEK_BEFORE,),
        campaign_type="commercial",
        campaign_window_days=21,
        recommended_niches=("romance", "poetry", "gift books"),
    ),
    SystemEventTemplate(
        key="international_womens_day",
        name="International Women's Day",
        description="Celebration of women's day",
        month=3,
        day=8,
        category="awareness",
        default_tags=(_CONTENT,),
        default_reminders=(_WEEK_BEFORE,),
        campaign_type="visibility",
    ),
    SystemEventTemplate(
        key="st_patricks_day",
        name="St. Patrick's Day",
        description="Irish holiday celebrated internationally",
        month=3,
        day=17,
        category="holidays",
        enabled=False,
        default_tags=(_PROMO,),
        default_reminders=(_WEEK_BEFORE,),
    ),
    SystemEventTemplate(
        key="storytelling_day",
        name="World Storytelling Day",
        description="International day of storytelling",
        month=3,
        day=20,
        category="literary",
        enabled=False,
        default_tags=(_CONTENT,),
        default_reminders=(_WEEK_BEFORE,),
    ),
    SystemEventTemplate(
        key="poetry_day",
        name="World Poetry Day",
        description="Celebration of poetry",
        month=3,
        day=21,
        category="literary",
        enabled=False,
        default_tags=(_CONTENT,),
        default_reminders=(_WEEK_BEFORE,),
    ),
    # Q2
    SystemEventTemplate(
        key="earth_day",
        name="Earth Day",
        description="Environmental awareness",
        month=4,
        day=22,
        category="awareness",
        enabled=False,
        default_tags=(_CONTENT,),
        default_reminders=(_WEEK_BEFORE,),
    ),
    SystemEventTemplate(
        key="world_book_day",
        name="World Book Day",
        description="Key date for literary promotions",
        month=4,
        day=23,
        category="literary",
        priority=EventPriority.URGENT,
        default_tags=(_LAUNCH, _PROMO),
        default_reminders=(_WEEK_BEFORE, _TWO_DAYS_BEFORE),
        campaign_type="commercial",
        campaign_window_days=30,
        recommended_niches=("fiction", "children", "classics"),
    ),
    SystemEventTemplate(
        key="mothers_day",
        name="Mother's Day",
        description="Mother's day (date varies by country)",
        month=5,
        dynamic_rule=NthWeekdayOfMonth(2, calendar.SUNDAY, 5),
        priority=EventPriority.HIGH,
        default_tags=(_PROMO, _MARKETING),
        default_reminders=(_WEEK_BEFORE,),
        campaign_type="commercial",
        campaign_window_days=21,
        recommended_niches=("cookbooks", "memoirs", "gift books"),
    ),
    SystemEventTemplate(
        key="fathers_day",
        name="Father's Day",
        description="Father's day",
        month=6,
        dynamic_rule=NthWeekdayOfMonth(3, calendar.SUNDAY, 6),
        priority=EventPriority.HIGH,
        default_tags=(_PROMO, _MARKETING),
        default_reminders=(_WEEK_BEFORE,),
        campaign_type="commercial",
        campaign_window_days=21,
        recommended_niches=("history", "sports", "biographies"),
    ),
    # Q3
    SystemEventTemplate(
        key="summer_sale",
        name="Summer Sales",
        description="Start of the summer sales season",
        month=7,
        day=1,
        default_tags=(_PROMO,),
        default_reminders=(_WEEK_BEFORE,),
        campaign_type="seasonal",
        campaign_window_days=30,
        recommended_niches=("beach reads", "thrillers"),
    ),
    SystemEventTemplate(
        key="back_to_school",
        name="Back to School",
        description="Back-to-school season",
        month=9,
        day=1,
        priority=EventPriority.HIGH,
        default_tags=(_PROMO, _MARKETING),
        default_reminders=(_WEEK_BEFORE,),
        campaign_type="seasonal",
        campaign_window_days=30,
        recommended_niches=("workbooks", "children", "study guides"),
    ),
    # Q4
    SystemEventTemplate(
        key="libraries_day",
        name="Library Day",
        description="Celebration of libraries",
        month=10,
        day=24,
        category="literary",
        enabled=False,
        default_tags=(_CONTENT,),
        default_reminders=(_WEEK_BEFORE,),
    ),
    SystemEventTemplate(
        key="halloween",
        name="Halloween",
        description="Themed promotions for horror and fantasy",
        month=10,
        day=31,
        default_tags=(_PROMO, _CONTENT),
        default_reminders=(_WEEK_BEFORE,),
        campaign_type="seasonal",
        campaign_window_days=21,
        recommended_niches=("horror", "fantasy", "children"),
    ),
    SystemEventTemplate(
        key="singles_day",
        name="Singles' Day (11.11)",
        description="Largest online shopping event in the world",
        month=11,
        day=11,
        default_tags=(_PROMO,),
        default_reminders=(_WEEK_BEFORE,),
        campaign_type="commercial",
    ),
    SystemEventTemplate(
        key="thanksgiving_us",
        name="Thanksgiving (US)",
        description="US Thanksgiving, anchor for the November sales",
        month=11,
        dynamic_rule=NthWeekdayOfMonth(4, calendar.THURSDAY, 11),
        category="holidays",
        enabled=False,
    ),
    SystemEventTemplate(
        key="black_friday",
        name="Black Friday",
        description="Biggest discount event of the year",
        month=11,
        dynamic_rule=FixedOffsetFromDate("thanksgiving_us", 1),
        priority=EventPriority.URGENT,
        default_tags=(_PROMO, _MARKETING),
        default_reminders=(_WEEK_BEFORE, _TWO_DAYS_BEFORE),
        campaign_type="commercial",
        campaign_window_days=30,
        recommended_niches=("all",),
    ),
    SystemEventTemplate(
        key="cyber_monday",
        name="Cyber Monday",
        description="Online deals after Black Friday",
        month=11,
        dynamic_rule=FixedOffsetFromDate("black_friday", 3),
        priority=EventPriority.HIGH,
        default_tags=(_PROMO,),
        default_reminders=(_WEEK_BEFORE,),
        campaign_type="commercial",
        campaign_window_days=7,
        recommended_niches=("ebooks", "box sets"),
    ),
    SystemEventTemplate(
        key="christmas_eve",
        name="Christmas Eve",
        description="Christmas eve",
        month=12,
        day=24,
        category="holidays",
        default_tags=(_PROMO,),
        default_reminders=(_WEEK_BEFORE,),
    ),
    SystemEventTemplate(
        key="christmas",
        name="Christmas Day",
        description="Christmas day",
        month=12,
        day=25,
        category="holidays",
        priority=EventPriority.HIGH,
        default_tags=(_PROMO, _CONTENT),
        default_reminders=(_WEEK_BEFORE,),
        campaign_type="seasonal",
        campaign_window_days=45,
        recommended_niches=("children", "gift books", "cookbooks"),
    ),
    SystemEventTemplate(
        key="new_years_eve",
        name="New Year's Eve",
        description="End of the year",
        month=12,
        day=31,
        category="holidays",
        default_tags=(_CONTENT,),
        default_reminders=(_WEEK_BEFORE,),
    ),
)

EVENT_CATEGORIES = {
    "holidays": "Holidays",
    "commercial": "Commercial",
    "literary": "Literary",
    "awareness": "Awareness",
}


def templates_by_key(
    templates: tuple[SystemEventTemplate, ...] | list[SystemEventTemplate],
) -> dict[str, SystemEventTemplate]:
    return {t.key: t for t in templates}
