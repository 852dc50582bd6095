import random
from typing import Dict, List, Optional

DEFAULT_WORDS: Dict[str, List[str]] = {
    "nouns": [
        "time", "year", "people", "way", "day", "man", "thing", "woman", "life", "child",
        "world", "school", "state", "family", "student", "group", "country", "problem", "hand", "part",
    ],
    "verbs": [
        "be", "have", "do", "say", "get", "make", "go", "know", "take", "see",
        "come", "think", "look", "want", "give", "use", "find", "tell", "ask", "work",
    ],
    "adjectives": [
        "good", "new", "first", "last", "long", "great", "little", "own", "other", "old",
        "right", "big", "high", "different", "small", "large", "next", "early", "young", "important",
    ],
}


class TextGenerator:
    """Builds practice text from uniformly chosen words, never repeating a word type twice in a row."""

    def __init__(self, words: Optional[Dict[str, List[str]]] = None, rng: Optional[random.Random] = None):
        source = words if words is not None else DEFAULT_WORDS
        self.words = {word_type: list(word_list) for word_type, word_list in source.items()}
        self._rng = rng or random.Random()

    def generate_text(self, word_count: int = 50) -> str:
        types = [t for t, word_list in self.words.items() if word_list]
        if not types:
            raise ValueError("No words available to generate text")

        text = []
        prev_type = None
        for _ in range(word_count):
            choices = [t for t in types if t != prev_type] or types
            word_type = self._rng.choice(choices)
            text.append(self._rng.choice(self.words[word_type]))
            prev_type = word_type
        return " ".join(text)

    def add_custom_words(self, word_type: str, words: List[str]) -> None:
        if word_type not in self.words:
            raise ValueError(f"Invalid word type: {word_type}")
        self.words[word_type].extend(words)
