"""Hypothesis strategies for property-based testing."""

from datetime import timedelta

from hypothesis import strategies as st


@st.composite
def generate_duration(draw):
    """Generate a (Duration: line, expected timedelta) pair."""
    hours = draw(st.integers(min_value=0, max_value=99))
    minutes = draw(st.integers(min_value=0, max_value=59))
    seconds = draw(st.integers(min_value=0, max_value=59))
    centis = draw(st.integers(min_value=0, max_value=99))
    line = (
        f"  Duration: {hours:02d}:{minutes:02d}:{seconds:02d}.{centis:02d}, "
        "start: 0.000000, bitrate: 1205 kb/s"
    )
    expected = timedelta(hours=hours, minutes=minutes, seconds=seconds, milliseconds=centis * 10)
    return line, expected


@st.composite
def generate_progress_lines(draw):
    """Generate stats lines with strictly increasing elapsed times (in centiseconds)."""
    centis = draw(
        st.lists(st.integers(min_value=0, max_value=360_000), min_size=1, max_size=30, unique=True)
    )
    centis.sort()
    lines = []
    for i, value in enumerate(centis):
        total_seconds, cs = divmod(value, 100)
        minutes, seconds = divmod(total_seconds, 60)
        hours, minutes = divmod(minutes, 60)
        lines.append(
            f"frame={i * 10:5d} fps= 25 q=28.0 size=    {i * 64}kB "
            f"time={hours:02d}:{minutes:02d}:{seconds:02d}.{cs:02d} bitrate= 900.1kbits/s speed=1.1x"
        )
    return lines, centis


noise_lines = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",), blacklist_characters="\r\n"),
    max_size=120,
).filter(lambda s: "size=" not in s and "Duration:" not in s and "Stream" not in s)
