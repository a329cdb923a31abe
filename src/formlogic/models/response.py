"""Response value types — the answers a respondent has given so far.

Answers arrive from the renderer as plain data.  Rather than passing ``Any``
through the engine, the accepted shapes form a small tagged union:

  - str: free text, single choice, email, phone, url, ISO date strings
  - int / float: number, rating, scale
  - bool: yes/no toggles
  - list[str]: checkbox (multi-select)
  - date / datetime: date pickers that hand over native values
  - None: unanswered

Coercion between these shapes is done by the per-type tables in
:mod:`formlogic.coercion`.
"""

from datetime import date, datetime
from typing import Mapping, Union

ResponseValue = Union[str, int, float, bool, list, date, datetime, None]

ResponseMap = Mapping[str, ResponseValue]


def is_empty(value: ResponseValue) -> bool:
    """True if the answer counts as unanswered: ``None`` or the empty string.

    An empty list is *not* empty under this rule; a checkbox with no ticks
    still has an answer (the empty selection).
    """
    return value is None or value == ""
