from typing import Dict, Iterable, List, Optional, Set


def normalize(text: Optional[str]) -> str:
    return (text or '').strip().lower()


def matched_entries(entries: Iterable[str], guesses: Iterable[str]) -> Set[str]:
    """Entries equal to at least one guess, ignoring case and surrounding spaces."""
    guessed = {normalize(g) for g in guesses}
    guessed.discard('')
    return {e for e in entries if normalize(e) in guessed}


def marked_hits(entries: Iterable[str], marked: Iterable[str]) -> Set[str]:
    marks = {normalize(m) for m in marked}
    return {e for e in entries if normalize(e) in marks}


def score_turn(entries: Iterable[str], guesses: Iterable[str], marked: Iterable[str]) -> int:
    """Score a single turn.

    One point per category entry that was either guessed by text or marked
    correct by the announcer. An entry that is both guessed and marked still
    counts once; marks that are not entries of the category count nothing.
    """
    entries = list(entries or [])
    return len(matched_entries(entries, guesses) | marked_hits(entries, marked))


def entry_results(entries: Iterable[str], guesses: Iterable[str], marked: Iterable[str]) -> List[Dict[str, object]]:
    entries = list(entries or [])
    guessed = matched_entries(entries, guesses)
    hits = marked_hits(entries, marked)
    return [
        {
            'entry': e,
            'guessed': e in guessed,
            'marked': e in hits,
            'correct': e in guessed or e in hits,
        }
        for e in entries
    ]
