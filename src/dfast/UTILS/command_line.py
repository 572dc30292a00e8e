# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Helpers for splitting instruction arguments into words, arrays and key=value pairs.
"""
import json
import logging
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

QUOTES = "\"'"


def split_first_word(text: str) -> Tuple[str, str]:
    """
    Splits off the first whitespace-delimited word.

    :param text: The text to split.
    :return: The first word and the remaining text without leading whitespace.
    """
    parts = text.split(None, 1)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1]


def parse_word_list(text: str) -> List[str]:
    """
    Parses instruction arguments given either in exec form or as plain words.

    ``["a", "b"]`` yields ``["a", "b"]``; ``a b`` yields ``["a", "b"]``.
    Bracketed text that is not a JSON array of strings is split like plain
    words, which is how Docker falls back to shell form.

    :param text: The instruction content.
    :return: The list of words.
    """
    clean = text.strip()
    if not clean:
        return []

    if clean.startswith("["):
        try:
            value = json.loads(clean)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return value
        logger.debug("Not a JSON string array, splitting as words: %r", clean)

    return [word for word in clean.split(" ") if word]


def split_quoted_words(text: str) -> List[str]:
    """
    Splits text on whitespace that is not inside single or double quotes.
    Quotes and backslash escapes are kept in the resulting words.
    """
    words = []
    current: List[str] = []
    quote: Optional[str] = None
    escaped = False

    for ch in text:
        if escaped:
            current.append(ch)
            escaped = False
            continue
        if ch == "\\" and quote != "'":
            current.append(ch)
            escaped = True
            continue
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in QUOTES:
            quote = ch
            current.append(ch)
            continue
        if ch.isspace():
            if current:
                words.append("".join(current))
                current = []
            continue
        current.append(ch)

    if current:
        words.append("".join(current))
    return words


def _assignment_separator(word: str) -> int:
    """
    Position of the ``=`` separating key and value, or -1.

    A key may be quoted (``"com.example.vendor"=ACME``); its ``=`` follows the
    closing quote. Unquoted keys must not contain quotes.
    """
    if word and word[0] in QUOTES:
        close = word.find(word[0], 1)
        if close > 0 and word.startswith("=", close + 1):
            return close + 1
        return -1
    sep = word.find("=")
    if sep > 0 and not any(q in word[:sep] for q in QUOTES):
        return sep
    return -1


def parse_assignments(text: str) -> Dict[str, str]:
    """
    Parses ``key=value`` pairs as used by ARG, ENV and LABEL.

    Keys and values may be quoted; the quotes are kept. A word without
    ``=`` continues the previous value, separated by a space, which also covers
    the legacy ``ENV KEY some value`` form. A bare key gets an empty value.

    :param text: The instruction content.
    :return: Mapping of keys to values in source order.
    """
    pairs: Dict[str, str] = {}
    last_key: Optional[str] = None

    for word in split_quoted_words(text):
        sep = _assignment_separator(word)
        if sep > 0:
            key, value = word[:sep], word[sep + 1:]
            pairs[key] = value
            last_key = key
        elif last_key is None:
            pairs[word] = ""
            last_key = word
        else:
            previous = pairs[last_key]
            pairs[last_key] = f"{previous} {word}" if previous else word

    return pairs


def is_quoted(value: str) -> bool:
    """Checks whether a value is wrapped in matching single or double quotes."""
    return len(value) >= 2 and value[0] in QUOTES and value[-1] == value[0]
