"""
Coach Prompts

Turns aggregated summaries into the text prompts sent to the model.
Averages, adherence percentages and goal progression are derived here,
at formatting time; the aggregator only hands over records and sums.
"""

from typing import List, Optional

from services.coach_data_aggregator import DailySummary, WeeklySummary
from services.coach_records import DEFAULT_INTENSITY, Goals, UserProfile, WeeklyCheckin
from services.coach_resolver import ResolvedCoach

DEFAULT_SUBJECT = "Your Weekly Coaching Update"

INTENSITY_DESCRIPTIONS = {
    "Low": (
        "Be gentle and encouraging. Celebrate small wins, keep suggestions light, "
        "and never make the client feel guilty about missed days."
    ),
    "Medium": (
        "Be supportive but direct. Acknowledge progress, point out what slipped, "
        "and give one or two clear actions for the rest of the week."
    ),
    "High": (
        "Be demanding and direct. Hold the client accountable to their goals, "
        "call out missed targets plainly, and set firm expectations for today."
    ),
    "Extreme": (
        "Be a drill sergeant. Zero excuses, blunt language, and relentless "
        "accountability, while staying respectful and never unsafe."
    ),
}


def _num(value: Optional[float]) -> Optional[str]:
    """Render a number without a trailing .0; None/0 count as not set."""
    if not value:
        return None
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def _or(value, default: str) -> str:
    if isinstance(value, (int, float)):
        return _num(value) or default
    return value or default


def _pct(part: float, whole: float) -> str:
    return f"{part / whole * 100:.0f}"


def _signed(value: float, digits: int = 1) -> str:
    text = f"{value:.{digits}f}"
    return text if text.startswith("-") else f"+{text}"


def goal_type(profile: Optional[UserProfile]) -> str:
    if profile and profile.goals.goal_type:
        return profile.goals.goal_type
    return "Not specified"


def _goals(profile: Optional[UserProfile]) -> Goals:
    return profile.goals if profile else Goals()


def format_profile(profile: UserProfile) -> List[str]:
    g = profile.goals
    return [
        "USER PROFILE:",
        f"- Coach ID: {profile.coach_id or 'AI Coach'}",
        f"- Goal Type: {_or(g.goal_type, 'Not set')}",
        f"- Calorie Limit: {_or(g.calorie_limit, 'Not set')}",
        f"- Protein Goal: {_or(g.protein_goal, 'Not set')}g",
        f"- Workout Sessions Goal: {_or(g.workout_sessions_per_week, 'Not set')} per week",
        f"- Cardio Sessions Goal: {_or(g.cardio_sessions_per_week, 'Not set')} per week",
        f"- Water Goal: {_or(g.water_goal, 'Not set')}L per day",
        f"- Starting Weight: {_or(g.starting_weight, 'Not set')}kg",
        "",
    ]


def format_weekly_checkin(checkin: WeeklyCheckin, title: str = "WEEKLY CHECKIN RESPONSES") -> List[str]:
    lines = [
        f"{title}:",
        f"- Average Weight: {_or(checkin.average_weight, 'N/A')}kg",
        f"- Average Steps: {_or(checkin.average_steps, 'N/A')}",
        f"- Average Sleep: {_or(checkin.average_sleep, 'N/A')} hours",
        f"- Workout Goal: {_or(checkin.workout_goal_achieved, 'N/A')}",
        f"- Cardio Goal: {_or(checkin.cardio_goal_achieved, 'N/A')}",
    ]
    for label, attr in WeeklyCheckin.REFLECTIONS:
        lines.append(f"- {label}: {getattr(checkin, attr) or 'Not provided'}")
    lines.append("")
    return lines


def format_daily_checkins(summary, goals: Goals) -> List[str]:
    checkins = summary.daily_checkins
    if not checkins:
        return []

    lines = [f"DAILY CHECKINS ({len(checkins)} days logged):"]
    for c in checkins:
        lines.append(
            f"- {c.date.isoformat()}: Weight {_or(c.current_weight, 'N/A')}kg, "
            f"Steps {_or(c.step_count, 'N/A')}, Sleep {_or(c.hours_of_sleep, 'N/A')}h, "
            f"Trained: {c.trained_today or 'N/A'}, Cardio: {c.cardio_today or 'N/A'}, "
            f"Calories: {c.calorie_goal_met or 'N/A'}"
        )

    weights = [c.current_weight for c in checkins if c.current_weight]
    steps = [c.step_count for c in checkins if c.step_count]
    sleep = [c.hours_of_sleep for c in checkins if c.hours_of_sleep]
    days = len(checkins)
    trained = sum(1 for c in checkins if c.trained_today == "Yes")
    cardio = sum(1 for c in checkins if c.cardio_today == "Yes")
    calories_met = sum(1 for c in checkins if c.calorie_goal_met == "Yes")

    lines += ["", "DAILY CHECKIN SUMMARY:"]
    if weights:
        line = (
            f"- Weight: Avg {sum(weights) / len(weights):.1f}kg, "
            f"Range {min(weights):.1f}-{max(weights):.1f}kg"
        )
        if goals.starting_weight:
            line += f", Change from start: {_signed(weights[-1] - goals.starting_weight)}kg"
        lines.append(line)
    if steps:
        lines.append(
            f"- Steps: Avg {round(sum(steps) / len(steps))}, "
            f"Range {_num(min(steps))}-{_num(max(steps))}"
        )
    if sleep:
        lines.append(
            f"- Sleep: Avg {sum(sleep) / len(sleep):.1f}h, "
            f"Range {min(sleep):.1f}-{max(sleep):.1f}h"
        )
    lines += [
        f"- Training Adherence: {trained}/{days} days ({_pct(trained, days)}%)",
        f"- Cardio Adherence: {cardio}/{days} days ({_pct(cardio, days)}%)",
        f"- Calorie Goal Adherence: {calories_met}/{days} days ({_pct(calories_met, days)}%)",
        "",
    ]
    return lines


def format_food_diaries(summary, goals: Goals) -> List[str]:
    diaries = summary.food_diaries
    if not diaries:
        return []

    calorie_goal = goals.calorie_limit or 0
    lines = [f"FOOD DIARIES ({len(diaries)} days logged):"]
    days_met = 0
    for d in diaries:
        # within 10% of the calorie goal either way
        if calorie_goal and calorie_goal * 0.9 <= d.total_calories <= calorie_goal * 1.1:
            days_met += 1
        vs_goal = (
            f"{_signed((d.total_calories - calorie_goal) / calorie_goal * 100)}%"
            if calorie_goal else "N/A"
        )
        lines.append(
            f"- {d.date.isoformat()}: {_num(d.total_calories) or 0} cal ({vs_goal} vs goal), "
            f"{_num(d.total_protein) or 0}g protein, {_num(d.total_carbs) or 0}g carbs, "
            f"{_num(d.total_fat) or 0}g fat"
        )

    n = len(diaries)
    met_pct = _pct(days_met, n) if calorie_goal else "N/A"
    lines += [
        "",
        "FOOD DIARY SUMMARY:",
        f"- Average Daily Calories: {summary.total_calories / n:.0f} (Goal: {_or(goals.calorie_limit, 'Not set')})",
        f"- Average Daily Protein: {summary.total_protein / n:.1f}g (Goal: {_or(goals.protein_goal, 'Not set')}g)",
        f"- Average Daily Carbs: {summary.total_carbs / n:.1f}g (Goal: {_or(goals.carb_goal, 'Not set')}g)",
        f"- Average Daily Fat: {summary.total_fat / n:.1f}g (Goal: {_or(goals.fat_goal, 'Not set')}g)",
        f"- Days Met Calorie Goal (±10%): {days_met}/{n} ({met_pct}%)",
        "",
    ]
    return lines


def format_workout_logs(summary, goals: Goals) -> List[str]:
    logs = summary.workout_logs
    if not logs:
        return []

    goal = goals.workout_sessions_per_week or 0
    completed = sum(1 for log in logs if log.status == "completed")
    lines = [f"WORKOUT LOGS ({len(logs)} sessions, {completed} completed):"]
    for log in logs:
        lines.append(
            f"- {log.date.isoformat()}: {log.routine_name or 'Workout'} (Status: {log.status or 'N/A'})"
        )
    lines += [
        "",
        "WORKOUT SUMMARY:",
        f"- Completed: {completed} sessions",
        f"- Weekly Goal: {_or(goal, 'Not set')} sessions",
        f"- Goal Achievement: {_pct(completed, goal) + '%' if goal else 'N/A'}",
        "",
    ]
    return lines


def format_cardio_logs(summary, goals: Goals) -> List[str]:
    logs = summary.cardio_logs
    if not logs:
        return []

    goal = goals.cardio_sessions_per_week or 0
    heart_rates = [log.avg_heart_rate for log in logs if log.avg_heart_rate]
    avg_hr = f"{round(sum(heart_rates) / len(heart_rates))} bpm" if heart_rates else "N/A"

    lines = [f"CARDIO LOGS ({len(logs)} sessions):"]
    for log in logs:
        lines.append(
            f"- {log.date.isoformat()}: {log.name or 'Cardio'} - {_num(log.minutes) or 0} min, "
            f"{_num(log.calories) or 0} calories, HR {_or(log.avg_heart_rate, 'N/A')} bpm"
        )
    lines += [
        "",
        "CARDIO SUMMARY:",
        f"- Total Sessions: {len(logs)}",
        f"- Weekly Goal: {_or(goal, 'Not set')} sessions",
        f"- Goal Achievement: {_pct(len(logs), goal) + '%' if goal else 'N/A'}",
        f"- Total Minutes: {_num(summary.total_cardio_minutes) or 0}",
        f"- Average Session Duration: {summary.total_cardio_minutes / len(logs):.0f} minutes",
        f"- Total Calories Burned: {_num(summary.total_cardio_calories) or 0}",
        f"- Average Heart Rate: {avg_hr}",
        "",
    ]
    return lines


def format_water_logs(summary, goals: Goals) -> List[str]:
    logs = summary.water_logs
    if not logs:
        return []

    goal_litres = goals.water_goal or 0
    days_met = sum(1 for log in logs if goal_litres and log.total_ml >= goal_litres * 1000)
    lines = [f"WATER LOGS ({len(logs)} days logged):"]
    for log in logs:
        lines.append(f"- {log.date.isoformat()}: {log.total_ml / 1000:.2f}L")
    lines += [
        "",
        "WATER SUMMARY:",
        f"- Average Daily Intake: {summary.total_water_ml / len(logs) / 1000:.2f}L",
        f"- Daily Goal: {_or(goal_litres, 'Not set')}L",
        f"- Days Met Goal: {days_met}/{len(logs)} ({_pct(days_met, len(logs)) + '%' if goal_litres else 'N/A'})",
        "",
    ]
    return lines


def _format_period(summary, goals: Goals) -> List[str]:
    return (
        format_daily_checkins(summary, goals)
        + format_food_diaries(summary, goals)
        + format_workout_logs(summary, goals)
        + format_cardio_logs(summary, goals)
        + format_water_logs(summary, goals)
    )


def format_weekly_data(summary: WeeklySummary) -> str:
    lines = ["=== WEEKLY DATA SUMMARY ===", ""]
    if summary.user_profile:
        lines += format_profile(summary.user_profile)
    if summary.weekly_checkin:
        lines += format_weekly_checkin(summary.weekly_checkin)
    lines += _format_period(summary, _goals(summary.user_profile))
    return "\n".join(lines)


def goal_progression(summary: DailySummary) -> dict:
    """
    Week-to-date progress ratios against the profile goals.

    Each ratio is 0 when the goal is not set.
    """
    goals = _goals(summary.user_profile)
    diaries = len(summary.food_diaries)
    avg_calories = summary.total_calories / diaries if diaries else 0
    avg_protein = summary.total_protein / diaries if diaries else 0

    def ratio(value, goal):
        return value / goal if goal else 0.0

    return {
        "workout": ratio(len(summary.workout_logs), goals.workout_sessions_per_week),
        "cardio": ratio(len(summary.cardio_logs), goals.cardio_sessions_per_week),
        "calories": ratio(avg_calories, goals.calorie_limit),
        "protein": ratio(avg_protein, goals.protein_goal),
    }


def format_daily_data(summary: DailySummary) -> str:
    goals = _goals(summary.user_profile)
    progress = goal_progression(summary)

    lines = [
        "=== DAILY DATA SUMMARY ===",
        "",
        f"TODAY: {summary.day.isoformat()} (day {summary.days_into_week} of 7 this week, "
        f"week started {summary.week_start.isoformat()})",
        "",
    ]
    if summary.user_profile:
        lines += format_profile(summary.user_profile)

    lines += [
        "WEEK-TO-DATE GOAL PROGRESSION:",
        f"- Workouts: {len(summary.workout_logs)} completed of "
        f"{_or(goals.workout_sessions_per_week, 'Not set')} ({progress['workout'] * 100:.0f}%)",
        f"- Cardio: {len(summary.cardio_logs)} sessions of "
        f"{_or(goals.cardio_sessions_per_week, 'Not set')} ({progress['cardio'] * 100:.0f}%)",
        f"- Average Calories vs Limit: {progress['calories'] * 100:.0f}%",
        f"- Average Protein vs Goal: {progress['protein'] * 100:.0f}%",
        "",
    ]
    lines += _format_period(summary, goals)

    if summary.last_week_checkin:
        lines += format_weekly_checkin(summary.last_week_checkin, title="LAST WEEK'S CHECKIN")
    else:
        lines += ["LAST WEEK'S CHECKIN: Not submitted", ""]
    return "\n".join(lines)


def persona_instruction(coach: ResolvedCoach) -> str:
    if not coach.persona:
        return ""
    return (
        f"\n\nIMPORTANT: Adopt the persona of {coach.name}. {coach.persona}\n\n"
        "Your coaching style, tone, and approach should reflect this persona while "
        "maintaining professionalism and providing expert fitness and nutrition guidance."
    )


def intensity_instruction(coach: ResolvedCoach, profile: Optional[UserProfile]) -> str:
    level = profile.intensity if profile else DEFAULT_INTENSITY
    description = coach.intensity_levels.get(level) or INTENSITY_DESCRIPTIONS[level]
    return f"COACHING INTENSITY: {level}. {description}"


def build_weekly_prompt(summary: WeeklySummary, coach: ResolvedCoach) -> str:
    goal = goal_type(summary.user_profile)
    return f"""You are the AI Coach "{coach.name}", adopt their persona.{persona_instruction(coach)}

CRITICAL: The client's primary goal is "{goal}". ALL of your feedback must be tailored to support this specific goal. Whether they're trying to lose weight, gain strength, or gain weight, your recommendations should align with their goal type.

Provide thoughtful, personalized analysis with actionable insights. Focus on patterns, trends, and qualitative observations rather than overwhelming with numbers and percentages. Use data to inform your feedback, but communicate it in a natural, conversational way.

Analyze the following weekly data from your client (week starting {summary.week_start.isoformat()}):

{format_weekly_data(summary)}

IMPORTANT: Structure your coaching message with the following sections in this exact order:

Start with a warm greeting (2-3 sentences) that references the week being reviewed. Do NOT use a header for this greeting.

1. **Food Diary Feedback** (150-250 words): nutrition patterns against the "{goal}" goal, logging consistency, standout days, macro balance, and specific recommendations.

2. **Workout Log Feedback** (150-200 words): completed workouts against the weekly goal, distribution across the week, variety and progression.

3. **Cardio Log Feedback** (100-150 words): frequency, duration and intensity patterns, and how cardio supports the "{goal}" goal.

4. **Daily Checkin Log Feedback** (200-300 words): weight trend, steps, sleep, training and calorie adherence, and correlations between these metrics.

5. **Weekly Checkin Log Feedback** (200-250 words): respond to EACH reflection answer (appetite, energy, workouts, digestion, proud achievement, hardest part, social events, confidence, schedule, habit to improve) and connect it to the logged data.

6. **Overall Feedback** (150-200 words): 3-4 key wins, 2-3 focus areas, and a 3-5 step action plan for next week, ending with personalized encouragement.

Tone: warm, supportive, professional and goal-focused. Reference data where it helps but do not over-emphasize calculations.

Format your response as JSON with "subject" and "body" fields. The body should start with a natural greeting (no header), then use clear section headers (## Header Name) for each feedback section."""


def build_daily_prompt(summary: DailySummary, coach: ResolvedCoach) -> str:
    goal = goal_type(summary.user_profile)
    return f"""You are the AI Coach "{coach.name}", adopt their persona.{persona_instruction(coach)}

{intensity_instruction(coach, summary.user_profile)}

Write today's short daily check-in message for your client. Their primary goal is "{goal}".

Use the week-to-date data below. It is day {summary.days_into_week} of 7, so judge progress against how much of the week remains rather than the full weekly goals. Refer back to last week's check-in where it is relevant, especially the habit they wanted to improve.

{format_daily_data(summary)}

Requirements:
- 80-150 words, plain text, no headers, no JSON.
- Open with one sentence on how the week is going so far.
- Name one specific win and one specific focus for today.
- End with a short line of encouragement in your persona's voice."""
