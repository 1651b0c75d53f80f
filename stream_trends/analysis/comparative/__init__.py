from .multiple_comparisons import compare_groups, compact_letter_display

__all__ = ['compare_groups', 'compact_letter_display']
