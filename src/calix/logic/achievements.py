from calix.logic.models import (
    Achievement,
    Goals,
    DEFAULT_ACTIVITY_GOAL,
    DEFAULT_CALORIE_GOAL,
    DEFAULT_PROTEIN_GOAL,
)
from typing import Any, Dict, FrozenSet, List, Mapping, Optional
from datetime import date, timedelta
import math

# --- THRESHOLDS ---
TEN_ACTIVITIES = 10
SHORT_STREAK_DAYS = 3
LONG_STREAK_DAYS = 7
GOAL_DAYS_REQUIRED = 5
CALORIE_TOLERANCE = 0.10

# --- CATALOG ---
# Order here is the order achievements are reported in.
CATALOG: List[Achievement] = [
    Achievement(id="first_food", name="First Bite", description="Log your first food entry."),
    Achievement(id="first_activity", name="First Move", description="Log your first activity."),
    Achievement(id="ten_activities", name="Ten Sessions", description="Log 10 activity sessions."),
    Achievement(id="streak_3", name="3-Day Streak", description="Log food or activity 3 days in a row."),
    Achievement(id="streak_7", name="7-Day Streak", description="Log food or activity 7 days in a row."),
    Achievement(id="protein_goal_5", name="Protein Pro", description="Hit your protein goal on 5 days."),
    Achievement(id="calorie_goal_5", name="On Target", description="Land within 10% of your calorie goal on 5 days."),
    Achievement(id="activity_goal_5", name="Active Five", description="Reach your activity minutes goal on 5 days."),
]
CATALOG_BY_ID: Dict[str, Achievement] = {a.id: a for a in CATALOG}
CATALOG_IDS = frozenset(CATALOG_BY_ID)


def get_achievement(achievement_id: str) -> Optional[Achievement]:
    return CATALOG_BY_ID.get(achievement_id)


def ordered(ids) -> List[str]:
    """Sort achievement IDs by catalog order, dropping anything not in the catalog."""
    return [a.id for a in CATALOG if a.id in ids]


# --- COERCION ---
def _finite_number(value: Any) -> Optional[float]:
    """Numbers and numeric strings as floats; None for booleans, junk, NaN and infinities."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def to_number(value: Any) -> float:
    """Safe numeric coercion for log entries: anything unusable counts as 0."""
    number = _finite_number(value)
    return 0.0 if number is None else number


def _goal_value(goals: Mapping[str, Any], key: str, default: float) -> float:
    number = _finite_number(goals.get(key))
    return default if number is None else number


def normalize_goals(goals: Optional[Mapping[str, Any]]) -> Goals:
    """Fill in defaults for a stored goals value, which may be null or partial."""
    if isinstance(goals, Goals):
        return goals
    if not isinstance(goals, Mapping):
        return Goals()
    return Goals(
        calorieGoal=_goal_value(goals, 'calorieGoal', DEFAULT_CALORIE_GOAL),
        proteinGoal=_goal_value(goals, 'proteinGoal', DEFAULT_PROTEIN_GOAL),
        activityGoal=_goal_value(goals, 'activityGoal', DEFAULT_ACTIVITY_GOAL),
    )


def _entries(day_log: Mapping[str, Any], day: str) -> list:
    entries = day_log.get(day)
    return entries if isinstance(entries, list) else []


def _logged_days(day_log: Mapping[str, Any]) -> List[str]:
    return [day for day in day_log if _entries(day_log, day)]


def _entry_sum(entries: list, field: str) -> float:
    return sum(to_number(e.get(field)) for e in entries if isinstance(e, Mapping))


def _parse_day(key: str) -> Optional[date]:
    try:
        return date.fromisoformat(key)
    except (TypeError, ValueError):
        return None


# --- STREAK ---
def current_streak(diet: Mapping[str, Any], activity: Mapping[str, Any]) -> int:
    """
    Length of the unbroken run of logged days ending at the most recent date key.

    Date keys of both logs are walked newest first. The run stops at the first
    key with no food and no activity entries. It also stops at a calendar gap
    between two ISO date keys, which a walk over the keys alone would not
    notice: keys 01-01, 01-05 and 01-10 give a streak of 1, not 3.
    """
    all_days = sorted(set(diet) | set(activity), reverse=True)
    streak = 0
    previous: Optional[date] = None
    for day in all_days:
        if not (_entries(diet, day) or _entries(activity, day)):
            break
        parsed = _parse_day(day)
        if previous is not None and parsed is not None and previous - parsed != timedelta(days=1):
            break
        streak += 1
        if parsed is not None:
            previous = parsed
    return streak


# --- GOAL ATTAINMENT ---
def protein_goal_days(diet: Mapping[str, Any], goals: Goals) -> int:
    return sum(
        1 for day in _logged_days(diet)
        if _entry_sum(_entries(diet, day), 'protein') >= goals.proteinGoal
    )


def calorie_goal_days(diet: Mapping[str, Any], goals: Goals) -> int:
    low = goals.calorieGoal * (1 - CALORIE_TOLERANCE)
    high = goals.calorieGoal * (1 + CALORIE_TOLERANCE)
    return sum(
        1 for day in _logged_days(diet)
        if low <= _entry_sum(_entries(diet, day), 'calories') <= high
    )


def activity_goal_days(activity: Mapping[str, Any], goals: Goals) -> int:
    return sum(
        1 for day in _logged_days(activity)
        if _entry_sum(_entries(activity, day), 'duration') >= goals.activityGoal
    )


def compute(
    diet: Optional[Mapping[str, Any]],
    activity: Optional[Mapping[str, Any]],
    goals: Optional[Mapping[str, Any]] = None,
) -> FrozenSet[str]:
    """Compute the set of earned achievement IDs from logged history and goals."""
    diet = diet if isinstance(diet, Mapping) else {}
    activity = activity if isinstance(activity, Mapping) else {}
    goals = normalize_goals(goals)

    food_count = sum(len(_entries(diet, day)) for day in diet)
    activity_count = sum(len(_entries(activity, day)) for day in activity)
    streak = current_streak(diet, activity)

    earned = set()
    if food_count > 0:
        earned.add('first_food')
    if activity_count > 0:
        earned.add('first_activity')
    if activity_count >= TEN_ACTIVITIES:
        earned.add('ten_activities')
    if streak >= SHORT_STREAK_DAYS:
        earned.add('streak_3')
    if streak >= LONG_STREAK_DAYS:
        earned.add('streak_7')
    if protein_goal_days(diet, goals) >= GOAL_DAYS_REQUIRED:
        earned.add('protein_goal_5')
    if calorie_goal_days(diet, goals) >= GOAL_DAYS_REQUIRED:
        earned.add('calorie_goal_5')
    if activity_goal_days(activity, goals) >= GOAL_DAYS_REQUIRED:
        earned.add('activity_goal_5')
    return frozenset(earned)
