def format_duration(seconds: float) -> str:
    """Format seconds as ``MM:SS.cc`` (minutes wrap at 60)."""
    minutes = int(seconds // 60) % 60
    secs = int(seconds) % 60
    centis = int((seconds * 100) % 100)
    return f"{minutes:02d}:{secs:02d}.{centis:02d}"
