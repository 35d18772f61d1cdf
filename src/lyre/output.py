"""
An append-only text buffer that reports where each appended piece of text lands.
"""
from dataclasses import dataclass

from lyre.support.events import EventSource

LINE_BREAK = '\n'


@dataclass(frozen=True)
class Range:
    """ A span of text, from (start_line, start_col) up to (end_line, end_col). Lines and columns count from 0. """
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    @property
    def start(self):
        return self.start_line, self.start_col

    @property
    def end(self):
        return self.end_line, self.end_col

    @property
    def empty(self):
        return self.start == self.end


def end_position(text, line=0, col=0):
    """
    The position reached after writing text starting at (line, col).

    >>> end_position('ab')
    (0, 2)
    >>> end_position('ab\\ncd\\n', 1, 4)
    (3, 0)
    """
    breaks = text.count(LINE_BREAK)
    if not breaks:
        return line, col + len(text)
    return line + breaks, len(text) - text.rfind(LINE_BREAK) - 1


class OutputBuffer:
    """
    Accumulates text, such as a transcript of evaluation results, for a presentation layer to show.

    Each append fires changed with the buffer's uri. Listeners re-read content when notified;
    the change carries no diff. version counts the appends, for listeners that poll instead.
    """
    def __init__(self, uri='lyre://SESSION/output'):
        self.uri = uri
        self.changed = EventSource()
        self.version = 0
        self._content = ''
        self._end = (0, 0)

    @property
    def content(self):
        return self._content

    @property
    def end(self):
        """ the position following the last character in the buffer. """
        return self._end

    def append_text(self, text) -> Range:
        """
        Appends text to the buffer.
        :return: the range the text occupies in the buffer's content
        """
        start_line, start_col = self._end
        end_line, end_col = end_position(text, start_line, start_col)
        self._content += text
        self._end = (end_line, end_col)
        self.version += 1
        self.changed.fire(self.uri)
        return Range(start_line, start_col, end_line, end_col)
