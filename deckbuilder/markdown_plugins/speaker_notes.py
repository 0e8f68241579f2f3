import re

from markdown_it import MarkdownIt
from markdown_it.rules_block import StateBlock

NOTE_COMMENT_RE = re.compile(r'<!--\s*NOTE:\s*(.*?)\s*-->', re.IGNORECASE | re.DOTALL)


def speaker_notes_plugin(md: MarkdownIt):
    """Markdown-it-py plugin that turns lines beginning with `???` into
    `html_block` tokens of the form `<!-- NOTE: ... -->`.

    Running through the tokenizer means `???` inside fenced or indented code
    is left alone. A `???` line may interrupt a paragraph, list or quote.
    """

    def _note_block(state: StateBlock, start_line: int, end_line: int, silent: bool):
        # Indented code block territory
        if state.sCount[start_line] - state.blkIndent >= 4:
            return False

        src = state.src
        line_start = state.bMarks[start_line] + state.tShift[start_line]
        max_pos = state.eMarks[start_line]

        if not src.startswith('???', line_start):
            return False

        if silent:
            return True

        note_content = src[line_start + 3:max_pos].strip()

        token = state.push('html_block', '', 0)
        token.content = f"<!-- NOTE: {note_content} -->\n"
        token.map = [start_line, start_line + 1]
        token.meta = {'speaker_note': note_content}

        state.line = start_line + 1
        return True

    # Insert before paragraph rule so it captures lines first
    md.block.ruler.before(
        'paragraph',
        'speaker_notes',
        _note_block,
        {'alt': ['paragraph', 'reference', 'blockquote', 'list']},
    )
