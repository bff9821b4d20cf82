from .normalize import normalize_for_key, format_number

__all__ = ["normalize_for_key", "format_number"]
