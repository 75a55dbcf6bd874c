import re
import readline

from sqlglot.tokens import Tokenizer

WORD = re.compile(r"[A-Z][A-Z_]*")


def keywords():
    return sorted(keyword for keyword in Tokenizer.KEYWORDS if WORD.fullmatch(keyword))


class KeywordCompleter:
    """
    readline completer over SQL keywords, matching the case the operator typed.
    """

    def __init__(self, words=None):
        self.words = words if words is not None else keywords()
        self._matches = []

    def complete(self, text, state):
        if state == 0:
            prefix = text.upper()
            matches = [word for word in self.words if word.startswith(prefix)]
            if text and text == text.lower():
                matches = [word.lower() for word in matches]
            self._matches = matches
        if state < len(self._matches):
            return self._matches[state]
        return None


def install(completer=None):
    completer = completer or KeywordCompleter()
    readline.set_completer(completer.complete)
    readline.parse_and_bind("tab: complete")
    return completer
