MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 1440


def format_delay(minutes: int) -> str:
    """
    Human-readable delay label.

    Whole units read as "2 Days", "1 Hour", "30 Minutes"; mixed values use
    the compact form "1d 2h 5m". Zero is "No Delay".
    """
    minutes = int(minutes)
    d = minutes // MINUTES_PER_DAY
    h = (minutes % MINUTES_PER_DAY) // MINUTES_PER_HOUR
    m = minutes % MINUTES_PER_HOUR

    if d == 0 and h == 0 and m == 0:
        return "No Delay"

    if d > 0 and h == 0 and m == 0:
        return f"{d} Day{'' if d == 1 else 's'}"
    if d == 0 and h > 0 and m == 0:
        return f"{h} Hour{'' if h == 1 else 's'}"
    if d == 0 and h == 0 and m > 0:
        return f"{m} Minute{'' if m == 1 else 's'}"

    parts = []
    if d > 0:
        parts.append(f"{d}d")
    if h > 0:
        parts.append(f"{h}h")
    if m > 0:
        parts.append(f"{m}m")
    return " ".join(parts)
