schedule_generate_description = """
Generate a schedule for the given series, links and constraints over a date range.

### Request Body

The API endpoint takes the following parameters:

- `series`: List of series definitions, each with:
    - `id`: Unique id of the series

    - `title`: Display title (non-empty)
    - `patterns`: List of `{pattern, conditionId?}`; `pattern.type` is one of
      `daily`, `weekly` (`daysOfWeek`, `interval`), `monthly` (`day` or
      `weekday` + `nth`, `monthEnd`: `skip`/`clamp`) or `custom` (`intervalDays`, `anchorDate`)
    - `duration`: Minutes (>= 1)
    - `tags`, `locked`, `bounds`, `fixed`, `wiggle`, `timeOfDay`, `reminders`,
      `cycling`, `adaptiveDuration`: Optional settings

- `links`: List of `{id?, parentSeriesId, childSeriesId, targetDistance, earlyWobble, lateWobble}` (Optional)

- `constraints`: List of `{id, type, source, dest, withinMinutes?}` where `type` is one of
  `mustBeOnSameDay`, `cantBeOnSameDay`, `mustBeNextTo`, `cantBeNextTo`,
  `mustBeBefore`, `mustBeAfter`, `mustBeWithin` (Optional). Timed instances never overlap.

- `conditions`: Object mapping condition ids to condition trees (`count`,
  `daysSince`, `and`, `or`, `not`) (Optional)

- `completions`: List of `{id, seriesId, startTime, endTime, actualDuration}` (Optional)

- `exceptions`: List of `{id?, seriesId, originalDate, type, newTime?}` where `type` is
  `cancelled` (the occurrence is dropped) or `rescheduled` (pinned to `newTime`) (Optional)

- `request`: Object with:
    - `startDate`, `endDate`: Inclusive horizon (`YYYY-MM-DD`)

    - `timeoutSeconds`: Search budget (default from configuration)
    - `valueOrder`: `earliest` (default) or `ideal`
    - `slotMinutes`: Time resolution inside time windows
    - `diagnose`: Run the conflict diagnosis on failure (default true)

### Responses

- `200`: `schedule` (placed and gated instances), `grid` (series × date table),
  `summary` (per-series counts), `cycling` (next rotation index per series),
  `reminders` and `issues`
- `400`: Malformed input (structural error); `detail` explains what is wrong
- `422`: No schedule satisfies every link and constraint; `detail` is the conflict report
- `504`: The search ran out of time; `detail` is the conflict report with the partial placement
"""
